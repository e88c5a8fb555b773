import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from services.indexing import index_runner
from shared.models.document import Site


class TestParseArgs:
    def test_defaults(self) -> None:
        args = index_runner.parse_args(["site-1"])
        assert (args.site_id, args.folder, args.recursive, args.batch_size, args.max_concurrency) == ("site-1", "/", False, 10, 3)

    def test_site_required_without_list_sites(self) -> None:
        with pytest.raises(SystemExit):
            index_runner.parse_args([])

    def test_list_sites_alone(self) -> None:
        assert index_runner.parse_args(["--list-sites"]).list_sites


class TestMain:
    def _clients(self):
        source_client = MagicMock()
        source_client.boot = AsyncMock()
        source_client.close = AsyncMock()
        source_client.do_fetch_sites = AsyncMock(return_value=[Site(id="site-1", display_name="BISO Oslo")])
        other = MagicMock()
        other.boot = AsyncMock()
        other.close = AsyncMock()
        other.do_healthcheck = AsyncMock()
        return source_client, other

    def test_list_sites(self, helper_config) -> None:
        source_client, other = self._clients()
        with patch.object(index_runner, "SourceClientManager") as source_manager, \
                patch.object(index_runner, "RAGClientManager") as rag_manager, \
                patch.object(index_runner, "EmbedClientManager") as embed_manager:
            source_manager.return_value.get_client.return_value = source_client
            rag_manager.return_value.get_client.return_value = other
            embed_manager.return_value.get_client.return_value = other
            assert asyncio.run(index_runner.main(["--list-sites"])) == 0

        source_client.do_fetch_sites.assert_awaited_once()
        other.boot.assert_not_awaited()
        source_client.close.assert_awaited_once()

    def test_source_boot_failure_aborts(self, helper_config) -> None:
        source_client, other = self._clients()
        source_client.boot.side_effect = RuntimeError("invalid_client")
        with patch.object(index_runner, "SourceClientManager") as source_manager, \
                patch.object(index_runner, "RAGClientManager") as rag_manager, \
                patch.object(index_runner, "EmbedClientManager") as embed_manager:
            source_manager.return_value.get_client.return_value = source_client
            rag_manager.return_value.get_client.return_value = other
            embed_manager.return_value.get_client.return_value = other
            assert asyncio.run(index_runner.main(["site-1"])) == 1
