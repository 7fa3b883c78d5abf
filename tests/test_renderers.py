"""Tests for the Kroki, PlantUML, Graphviz and Vega renderer wrappers."""

from __future__ import annotations

import base64
import zlib
from unittest.mock import AsyncMock, MagicMock, patch

import graphviz
import httpx
import pytest

from fencedocs.core.errors import RenderError
from fencedocs.core.models import BlockInfo
from fencedocs.renderers import kroki, puml, vega, viz

SIMPLE_PUML = "Bob -> Alice : hello"
SIMPLE_DOT = "digraph{a->b}"
FAKE_SVG = '<svg xmlns="http://www.w3.org/2000/svg"><g/></svg>'
URLSAFE_CHARS = set("ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_=")


def _async_client(response=None, error=None):
    """Mock ``httpx.AsyncClient`` usable as an async context manager."""
    client = MagicMock()
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    client.get = AsyncMock(return_value=response, side_effect=error)
    client.post = AsyncMock(return_value=response, side_effect=error)
    return client


def _response(text, status_code=200):
    resp = MagicMock()
    resp.text = text
    resp.status_code = status_code
    resp.raise_for_status = MagicMock()
    return resp


# ---------------------------------------------------------------------------
# Kroki
# ---------------------------------------------------------------------------

class TestKroki:
    def test_encode_matches_deflate_base64url(self):
        expected = base64.urlsafe_b64encode(
            zlib.compress(SIMPLE_PUML.encode("utf-8"), level=9)
        ).decode("ascii")
        assert kroki.encode_source(SIMPLE_PUML) == expected

    def test_encode_is_url_safe(self):
        encoded = kroki.encode_source("graph TD\n" + "A-->B\n" * 50 + "ü€")
        assert set(encoded) <= URLSAFE_CHARS
        assert kroki.decode_source(encoded).endswith("ü€")

    def test_diagram_type_defaults_to_language(self):
        info = BlockInfo(language="mermaid", attributes={"kroki": True})
        assert kroki.diagram_type(info) == "mermaid"

    def test_diagram_type_puml_alias(self):
        info = BlockInfo(language="puml", attributes={"kroki": True})
        assert kroki.diagram_type(info) == "plantuml"

    def test_diagram_type_from_attribute(self):
        info = BlockInfo(language="text", attributes={"kroki": "ditaa"})
        assert kroki.diagram_type(info) == "ditaa"

    def test_url_defaults(self):
        url = kroki.diagram_url(SIMPLE_PUML, "plantuml")
        assert url == f"https://kroki.io/plantuml/svg/{kroki.encode_source(SIMPLE_PUML)}"

    def test_url_custom_server_and_format(self):
        url = kroki.diagram_url(SIMPLE_PUML, "puml", "png", "http://kroki.local:8000/")
        assert url.startswith("http://kroki.local:8000/plantuml/png/")


# ---------------------------------------------------------------------------
# PlantUML
# ---------------------------------------------------------------------------

class TestPlantumlHelpers:
    def test_prepare_wraps_shorthand(self):
        assert puml.prepare_source(SIMPLE_PUML) == f"@startuml\n{SIMPLE_PUML}\n@enduml\n"

    def test_prepare_keeps_directives(self):
        src = "@startmindmap\n* root\n@endmindmap"
        assert puml.prepare_source(src) == src + "\n"

    def test_prepare_empty(self):
        assert puml.prepare_source("\n\n") == "@startuml\n@enduml\n"

    def test_encode_uses_plantuml_alphabet(self):
        encoded = puml.encode_plantuml(SIMPLE_PUML)
        assert encoded
        assert set(encoded) <= set(puml._PLANTUML_ALPHABET)
        assert encoded == puml.encode_plantuml(SIMPLE_PUML)


class TestPlantumlServer:
    @pytest.mark.asyncio
    async def test_render_via_server(self):
        client = _async_client(_response('<?xml version="1.0"?>' + FAKE_SVG))
        with patch("fencedocs.renderers.puml.httpx.AsyncClient", return_value=client):
            svg = await puml.render(SIMPLE_PUML, server_url="http://puml.local/")

        assert svg == FAKE_SVG
        url = client.get.await_args.args[0]
        assert url.startswith("http://puml.local/svg/")

    @pytest.mark.asyncio
    async def test_server_error_raises_render_error(self):
        client = _async_client(error=httpx.ConnectError("connection refused"))
        with patch("fencedocs.renderers.puml.httpx.AsyncClient", return_value=client):
            with pytest.raises(RenderError, match="connection refused"):
                await puml.render(SIMPLE_PUML, server_url="http://puml.local")

    @pytest.mark.asyncio
    async def test_non_svg_response(self):
        client = _async_client(_response("<html>oops</html>"))
        with patch("fencedocs.renderers.puml.httpx.AsyncClient", return_value=client):
            with pytest.raises(RenderError, match="SVG"):
                await puml.render(SIMPLE_PUML, server_url="http://puml.local")


class TestPlantumlLocal:
    @pytest.mark.asyncio
    async def test_not_configured(self):
        with patch("fencedocs.renderers.puml.shutil.which", return_value=None):
            with pytest.raises(RenderError, match="not configured"):
                await puml.render(SIMPLE_PUML)

    @pytest.mark.asyncio
    async def test_missing_jar(self, tmp_path):
        with pytest.raises(RenderError, match="not found"):
            await puml.render(SIMPLE_PUML, plantuml_jar_path=str(tmp_path / "nope.jar"))

    @pytest.mark.asyncio
    async def test_render_with_jar(self, tmp_path):
        jar = tmp_path / "plantuml.jar"
        jar.write_bytes(b"")
        proc = MagicMock()
        proc.communicate = AsyncMock(return_value=(FAKE_SVG.encode(), b""))
        proc.returncode = 0

        with patch("fencedocs.renderers.puml.shutil.which", return_value="/usr/bin/java"), \
             patch("fencedocs.renderers.puml.asyncio.create_subprocess_exec",
                   new=AsyncMock(return_value=proc)) as spawn:
            svg = await puml.render(SIMPLE_PUML, tmp_path, plantuml_jar_path=str(jar))

        assert svg == FAKE_SVG
        args = spawn.await_args.args
        assert args[:4] == ("java", "-Djava.awt.headless=true", "-jar", str(jar))
        assert "-pipe" in args and "-tsvg" in args
        assert spawn.await_args.kwargs["cwd"] == str(tmp_path)
        stdin = proc.communicate.await_args.args[0].decode()
        assert stdin.startswith("@startuml")

    @pytest.mark.asyncio
    async def test_non_zero_exit(self, tmp_path):
        proc = MagicMock()
        proc.communicate = AsyncMock(return_value=(b"", b"Syntax Error?"))
        proc.returncode = 1

        with patch("fencedocs.renderers.puml.shutil.which", return_value="/usr/bin/plantuml"), \
             patch("fencedocs.renderers.puml.asyncio.create_subprocess_exec",
                   new=AsyncMock(return_value=proc)):
            with pytest.raises(RenderError, match="Syntax Error"):
                await puml.render(SIMPLE_PUML)


# ---------------------------------------------------------------------------
# Graphviz
# ---------------------------------------------------------------------------

class TestGraphviz:
    @pytest.mark.asyncio
    async def test_render_passes_engine(self):
        source = MagicMock()
        source.pipe.return_value = '<?xml version="1.0"?>\n' + FAKE_SVG
        with patch("fencedocs.renderers.viz.graphviz.Source", return_value=source) as cls:
            svg = await viz.render(SIMPLE_DOT, engine="circo")

        assert svg == FAKE_SVG
        cls.assert_called_once_with(SIMPLE_DOT, engine="circo")
        source.pipe.assert_called_once_with(format="svg", encoding="utf-8")

    @pytest.mark.asyncio
    async def test_empty_engine_means_dot(self):
        source = MagicMock()
        source.pipe.return_value = FAKE_SVG
        with patch("fencedocs.renderers.viz.graphviz.Source", return_value=source) as cls:
            await viz.render(SIMPLE_DOT, engine="")
        assert cls.call_args.kwargs["engine"] == "dot"

    @pytest.mark.asyncio
    async def test_unknown_engine(self):
        with pytest.raises(RenderError, match="Unknown Graphviz engine"):
            await viz.render(SIMPLE_DOT, engine="bogus")

    @pytest.mark.asyncio
    async def test_missing_executable(self):
        source = MagicMock()
        source.pipe.side_effect = graphviz.ExecutableNotFound(["dot"])
        with patch("fencedocs.renderers.viz.graphviz.Source", return_value=source):
            with pytest.raises(RenderError, match="not found"):
                await viz.render(SIMPLE_DOT)


# ---------------------------------------------------------------------------
# Vega
# ---------------------------------------------------------------------------

class TestVegaSpecs:
    def test_load_json(self):
        assert vega.load_spec('  {"mark": "bar"} ') == {"mark": "bar"}

    def test_load_yaml(self):
        assert vega.load_spec("mark: bar\nwidth: 100") == {"mark": "bar", "width": 100}

    def test_load_empty(self):
        with pytest.raises(RenderError):
            vega.load_spec("  ")

    def test_inline_local_json(self, tmp_path):
        (tmp_path / "cars.json").write_text('[{"a": 1}]', encoding="utf-8")
        spec = {"mark": "bar", "data": {"url": "cars.json"}}
        out = vega.inline_local_data(spec, tmp_path)
        assert out["data"] == {"values": [{"a": 1}]}
        assert spec["data"] == {"url": "cars.json"}

    def test_inline_local_csv(self, tmp_path):
        (tmp_path / "cars.csv").write_text("a\n1\n", encoding="utf-8")
        out = vega.inline_local_data({"data": [{"name": "t", "url": "cars.csv"}]}, tmp_path)
        assert out["data"] == [{"name": "t", "values": "a\n1\n", "format": {"type": "csv"}}]

    def test_remote_and_missing_urls_untouched(self, tmp_path):
        spec = {
            "layer": [
                {"data": {"url": "https://example.com/a.json"}},
                {"data": {"url": "missing.json"}},
            ],
            "usermeta": {"url": "cars.json"},
        }
        assert vega.inline_local_data(spec, tmp_path) == spec

    def test_files_outside_base_dir_not_inlined(self, tmp_path):
        (tmp_path / "secret.txt").write_text("TOPSECRET", encoding="utf-8")
        docs = tmp_path / "docs"
        (docs / "nested").mkdir(parents=True)
        spec = {
            "data": {"url": "../secret.txt"},
            "layer": [{"data": {"url": "nested/../../secret.txt"}}],
        }
        out = vega.inline_local_data(spec, docs)
        assert out == spec
        assert "TOPSECRET" not in str(out)

    def test_nested_relative_file_inlined(self, tmp_path):
        (tmp_path / "data").mkdir()
        (tmp_path / "data" / "a.csv").write_text("x\n1\n", encoding="utf-8")
        out = vega.inline_local_data({"data": {"url": "data/a.csv"}}, tmp_path)
        assert out["data"]["values"] == "x\n1\n"


class TestVegaCompile:
    @pytest.mark.asyncio
    async def test_vega_posts_to_kroki(self):
        client = _async_client(_response(FAKE_SVG))
        with patch("fencedocs.renderers.vega.httpx.AsyncClient", return_value=client):
            svg = await vega.to_svg('{"marks": []}', server="http://kroki.local")

        assert svg == FAKE_SVG
        assert client.post.await_args.args[0] == "http://kroki.local/vega/svg"

    @pytest.mark.asyncio
    async def test_vega_lite_from_yaml(self):
        client = _async_client(_response(FAKE_SVG))
        with patch("fencedocs.renderers.vega.httpx.AsyncClient", return_value=client):
            await vega.lite_to_svg("mark: bar")

        call = client.post.await_args
        assert call.args[0] == "https://kroki.io/vegalite/svg"
        assert call.kwargs["content"] == b'{"mark": "bar"}'

    @pytest.mark.asyncio
    async def test_error_status(self):
        client = _async_client(_response("Unrecognized mark", status_code=400))
        with patch("fencedocs.renderers.vega.httpx.AsyncClient", return_value=client):
            with pytest.raises(RenderError, match="Unrecognized mark"):
                await vega.lite_to_svg('{"mark": "nope"}')

    @pytest.mark.asyncio
    async def test_non_object_spec(self):
        with pytest.raises(RenderError, match="object"):
            await vega.to_svg("- a\n- b")
