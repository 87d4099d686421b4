"""Tests for accounts, sign-in and the wired application context."""

from __future__ import annotations

import asyncio

import pytest

from streaky import create_app_context
from streaky.cache import ViewSelector
from streaky.config import TestConfig
from streaky.errors import Unauthorized
from streaky.models import Habit
from streaky.services import auth


@pytest.fixture
def ctx(tmp_path):
    context = create_app_context(TestConfig(tmp_path))
    yield context
    context.engine.dispose()


@pytest.fixture
def account(ctx):
    return auth.create_user(username="sam", password="correct horse", session_factory=ctx.session_factory)


class TestAuth:
    def test_password_is_hashed(self, account):
        assert account.id is not None
        assert account.password_hash != "correct horse"
        assert account.password_hash.startswith("$argon2")

    def test_authenticate(self, ctx, account):
        user = auth.authenticate(username=" sam ", password="correct horse", session_factory=ctx.session_factory)
        assert user is not None
        assert user.id == account.id
        assert user.last_login is not None

    def test_wrong_password(self, ctx, account):
        assert auth.authenticate(username="sam", password="nope", session_factory=ctx.session_factory) is None
        assert auth.authenticate(username="nobody", password="x", session_factory=ctx.session_factory) is None
        assert auth.authenticate(username="  ", password="x", session_factory=ctx.session_factory) is None

    def test_duplicate_username(self, ctx, account):
        with pytest.raises(ValueError, match="already exists"):
            auth.create_user(username="sam", password="other", session_factory=ctx.session_factory)

    @pytest.mark.parametrize("username,password", [("", "pw"), ("   ", "pw"), ("alex", "")])
    def test_blank_credentials(self, ctx, username, password):
        with pytest.raises(ValueError):
            auth.create_user(username=username, password=password, session_factory=ctx.session_factory)

    def test_get_user_by_username(self, ctx, account):
        assert auth.get_user_by_username("sam", ctx.session_factory).id == account.id
        assert auth.get_user_by_username("alex", ctx.session_factory) is None


class TestAppContext:
    def test_requires_sign_in(self, ctx):
        assert ctx.current_user_id() is None
        with pytest.raises(Unauthorized):
            ctx.require_user_id()
        with pytest.raises(Unauthorized):
            asyncio.run(ctx.log_cache.toggle("any-habit"))

    def test_sign_in_and_out(self, ctx, account):
        assert ctx.sign_in("sam", "wrong") is None
        assert ctx.current_user is None

        assert ctx.sign_in("sam", "correct horse").id == account.id
        assert ctx.require_user_id() == account.id

        ctx.log_cache.get_view(ViewSelector.for_user(account.id))
        ctx.sign_out()
        assert ctx.current_user is None
        assert ctx.log_cache.open_selectors() == []

    def test_switching_user_clears_views(self, ctx, account):
        auth.create_user(username="alex", password="pw", session_factory=ctx.session_factory)
        ctx.sign_in("sam", "correct horse")
        ctx.aggregator.habits_with_data()
        assert ctx.log_cache.open_selectors() == [ViewSelector.for_user(account.id)]

        other = ctx.sign_in("alex", "pw")
        assert ctx.log_cache.open_selectors() == []
        ctx.aggregator.habits_with_data()
        assert ctx.log_cache.open_selectors() == [ViewSelector.for_user(other.id)]

    def test_toggle_end_to_end(self, ctx, account):
        ctx.sign_in("sam", "correct horse")
        habit = ctx.aggregator.create_habit(Habit(title="Run", user_id=0))

        async def scenario():
            await ctx.aggregator.refresh()
            saved = await ctx.log_cache.toggle(habit.id)
            await ctx.log_cache.wait_idle()
            return saved

        saved = asyncio.run(scenario())
        assert saved.completed is True
        assert not saved.is_placeholder

        stored = ctx.log_repo.fetch_logs(ViewSelector.for_habit(habit.id))
        assert [log.id for log in stored] == [saved.id]

        [item] = asyncio.run(ctx.aggregator.refresh())
        assert item.habit.id == habit.id
        assert item.streak == 1
        assert item.completed_today is True

        asyncio.run(ctx.log_cache.toggle(habit.id))
        [item] = asyncio.run(ctx.aggregator.refresh())
        assert item.streak == 0
        assert len(ctx.log_repo.fetch_logs(ViewSelector.for_habit(habit.id))) == 1

    def test_cannot_log_another_users_habit(self, ctx, account):
        auth.create_user(username="alex", password="pw", session_factory=ctx.session_factory)
        ctx.sign_in("sam", "correct horse")
        habit = ctx.aggregator.create_habit(Habit(title="Run", user_id=0))

        intruder = ctx.sign_in("alex", "pw")
        ctx.log_cache.get_view(ViewSelector.for_user(intruder.id))
        with pytest.raises(Unauthorized):
            asyncio.run(ctx.log_cache.toggle(habit.id))

        assert ctx.log_repo.fetch_logs(ViewSelector.for_habit(habit.id)) == []
        assert ctx.log_cache.get_view(ViewSelector.for_user(intruder.id)).data == ()

    def test_delete_habit_removes_logs(self, ctx, account):
        ctx.sign_in("sam", "correct horse")
        habit = ctx.aggregator.create_habit(Habit(title="Read", user_id=0))
        asyncio.run(ctx.log_cache.toggle(habit.id))

        ctx.aggregator.delete_habit(habit.id)

        assert ctx.log_repo.fetch_logs(ViewSelector.for_user(account.id)) == []
        assert ctx.aggregator.habits() == []
