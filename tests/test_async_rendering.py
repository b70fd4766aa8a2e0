"""Tests for async-mode templates (async def render functions)."""

import asyncio

import pytest

from kiln import DictLoader, Environment, TemplateRuntimeError


async def fetch(value, delay=0):
    await asyncio.sleep(delay)
    return value


@pytest.fixture
def env_async():
    loader = DictLoader(
        {
            "base.html": "<main><%~ it['body'] %></main>",
            "page.html": "<% layout('base.html') %><%= await it['fetch']('page') %>",
            "item.html": "<li><%= await it['fetch'](it['n']) %></li>",
            "sync.html": "plain <%= it.get('n', 0) %>",
        }
    )
    return Environment(loader=loader)


class TestAsyncRendering:
    @pytest.mark.asyncio
    async def test_render_string_async_awaits(self, env):
        html = await env.render_string_async("<%= await it['fetch']('<ok>') %>", {"fetch": fetch})
        assert html == "&lt;ok&gt;"

    @pytest.mark.asyncio
    async def test_async_for(self, env):
        async def numbers():
            for n in range(3):
                yield n

        source = "<% async for n in it['numbers'](): %><%= n %>,<% end %>"
        assert await env.render_string_async(source, {"numbers": numbers}) == "0,1,2,"

    @pytest.mark.asyncio
    async def test_layout_awaits_include_async(self, env_async):
        html = await env_async.render_async("page.html", {"fetch": fetch})
        assert html == "<main>page</main>"

    @pytest.mark.asyncio
    async def test_include_async(self, env_async):
        source = (
            "<ul><% for n in it['ns']: %>"
            "<%~ await include_async('item.html', {'n': n, 'fetch': it['fetch']}) %>"
            "<% end %></ul>"
        )
        html = await env_async.render_string_async(source, {"ns": [1, 2], "fetch": fetch})
        assert html == "<ul><li>1</li><li>2</li></ul>"

    @pytest.mark.asyncio
    async def test_sync_include_from_async_template(self, env_async):
        html = await env_async.render_string_async("<%~ include('sync.html', {'n': 5}) %>")
        assert html == "plain 5"

    @pytest.mark.asyncio
    async def test_sync_template_renders_inline(self, env):
        template = env.from_string("<%= it['x'] %>")
        assert await template.render_async({"x": 1}) == "1"

    @pytest.mark.asyncio
    async def test_concurrent_renders_are_isolated(self, env):
        template = env.compile("<%= await it['fetch'](it['v'], it['d']) %>", async_mode=True)
        results = await asyncio.gather(
            *(template.render_async({"v": i, "d": 0.01 * (3 - i), "fetch": fetch}) for i in range(3))
        )
        assert results == ["0", "1", "2"]

    @pytest.mark.asyncio
    async def test_async_template_source(self, env):
        template = env.compile("x", async_mode=True)
        assert template.is_async
        assert template.source_code.startswith("async def __kiln_render(it, options):")

    def test_async_environment_default(self):
        env = Environment(async_mode=True)
        template = env.from_string("x")
        assert template.is_async
        assert env.render_string("x") == "x"
        with pytest.raises(TemplateRuntimeError, match="async mode"):
            template.render()
