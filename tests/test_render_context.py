"""Tests for the ContextVar-based render context."""

import asyncio
import threading

import pytest

from kiln import DictLoader, Environment
from kiln.environment.exceptions import IncludeDepthError
from kiln.render_context import (
    RenderContext,
    get_render_context,
    render_context,
    reset_render_context,
    set_render_context,
)


class TestRenderContext:
    def test_no_context_outside_render(self):
        assert get_render_context() is None

    def test_root_context(self):
        with render_context("page.html", "/t/page.html", max_include_depth=7) as ctx:
            assert get_render_context() is ctx
            assert ctx.template_name == "page.html"
            assert ctx.filename == "/t/page.html"
            assert ctx.include_depth == 0
            assert ctx.max_include_depth == 7
            assert ctx.template_stack == []
        assert get_render_context() is None

    def test_nested_context_is_child(self):
        with render_context("page.html") as outer:
            with render_context("nav.html") as inner:
                assert inner.include_depth == 1
                assert inner.template_stack == ["page.html"]
                assert inner.max_include_depth == outer.max_include_depth
            assert get_render_context() is outer

    def test_anonymous_parent_in_stack(self):
        ctx = RenderContext().child_context("nav.html")
        assert ctx.template_stack == ["<string>"]

    def test_child_does_not_share_stack(self):
        parent = RenderContext("page.html", template_stack=["root.html"])
        child = parent.child_context("nav.html")
        child.template_stack.append("extra")
        assert parent.template_stack == ["root.html"]

    def test_depth_limit(self):
        ctx = RenderContext("loop.html", include_depth=3, max_include_depth=3)
        with pytest.raises(IncludeDepthError, match="including 'loop.html'"):
            ctx.check_include_depth("loop.html")

    def test_reset_restores_previous(self):
        token = set_render_context(RenderContext("a.html"))
        try:
            assert get_render_context().template_name == "a.html"
        finally:
            reset_render_context(token)
        assert get_render_context() is None

    def test_context_restored_after_error(self):
        with pytest.raises(RuntimeError), render_context("page.html"):
            raise RuntimeError("boom")
        assert get_render_context() is None


class TestRenderIsolation:
    """Templates see the context of their own render only."""

    def test_template_render_opens_context(self):
        seen = []
        env = Environment()
        template = env.from_string("<% it['spy']() %>", name="spy.html")
        template.render(spy=lambda: seen.append(get_render_context().template_name))
        assert seen == ["spy.html"]
        assert get_render_context() is None

    def test_render_inside_outer_context_nests(self):
        seen = []
        template = Environment().from_string("<% it['spy']() %>")
        with render_context("outer.html"):
            template.render(spy=lambda: seen.append(get_render_context().template_stack))
        assert seen == [["outer.html"]]

    def test_include_depth_tracked(self):
        depths = []
        env = Environment(
            DictLoader(
                {
                    "a.html": "<% it['spy']() %><%~ include('b.html', it) %>",
                    "b.html": "<% it['spy']() %>",
                }
            )
        )
        env.render("a.html", {"spy": lambda: depths.append(get_render_context().include_depth)})
        assert depths == [0, 1]

    def test_threads_isolated(self):
        env = Environment()
        template = env.from_string("<% it['spy']() %>", name="t.html")
        results = {}

        def spy(key):
            results[key] = get_render_context().template_stack

        def worker(key):
            with render_context(f"{key}.html"):
                template.render(spy=lambda: spy(key))

        threads = [threading.Thread(target=worker, args=(f"w{i}",)) for i in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results == {f"w{i}": [f"w{i}.html"] for i in range(4)}

    @pytest.mark.asyncio
    async def test_tasks_isolated(self):
        env = Environment()
        template = env.compile("<% await it['spy']() %>", async_mode=True)
        stacks = []

        async def run(name):
            async def spy():
                await asyncio.sleep(0)
                stacks.append((name, get_render_context().template_stack))

            with render_context(name):
                await template.render_async(spy=spy)

        await asyncio.gather(run("a.html"), run("b.html"))
        assert sorted(stacks) == [("a.html", ["a.html"]), ("b.html", ["b.html"])]
