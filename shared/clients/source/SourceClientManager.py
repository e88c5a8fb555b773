from shared.helper.HelperConfig import HelperConfig
from shared.clients.source.SourceClientInterface import SourceClientInterface

class SourceClientManager:
    """
    Loads the document source client selected by SOURCE_ENGINE (default "sharepoint").
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        engine = self.helper_config.get_string_val("SOURCE_ENGINE", default="sharepoint")
        return engine.strip().lower().capitalize()

    def _initialize_client(self) -> SourceClientInterface:
        """
        Imports shared.clients.source.{engine}.SourceClient{Engine} and instantiates it.

        Raises:
            ValueError: If the engine is unknown.
        """
        engine = self._get_engine_from_env()
        class_name = f"SourceClient{engine}"
        try:
            module = __import__(
                f"shared.clients.source.{engine.lower()}.{class_name}",
                fromlist=[class_name],
            )
            client_class = getattr(module, class_name)
        except (ImportError, AttributeError) as e:
            raise ValueError(f"Unsupported source engine specified: '{engine}'. Error: {e}")
        client = client_class(helper_config=self.helper_config)
        self.logging.debug("Instantiated source client for engine: %s", engine)
        return client

    def get_client(self) -> SourceClientInterface:
        return self.client
