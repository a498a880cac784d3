"""
Tests for UserUpdatePolicy, run against unsaved accounts and a mocked repository.
"""

from unittest.mock import MagicMock

import pytest

from mediashelf.core.errors import Conflict, Forbidden, Invalid
from mediashelf.services.update_policy import UserUpdatePolicy

from factories import build_user


@pytest.fixture
def repo():
    repo = MagicMock()
    repo.get_by_username.return_value = None
    return repo


@pytest.fixture
def policy(repo):
    return UserUpdatePolicy(repo)


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def admin():
    return build_user("admin", role="admin")


@pytest.fixture
def root():
    return build_user("root", role="root")


@pytest.fixture
def alice():
    return build_user("alice", series_hide_from_continue_listening=["s1", "s2"])


def snapshot(user):
    return user.to_full_view()


class TestNoOpUpdates:
    def test_empty_payload_changes_nothing(self, policy, session, alice, admin):
        before = snapshot(alice)
        outcome = policy.apply_update(session, alice, {}, admin)

        assert not outcome
        assert outcome.changed is False
        assert snapshot(alice) == before

    def test_same_values_change_nothing(self, policy, session, alice, admin):
        before = snapshot(alice)
        payload = {
            "username": "alice",
            "email": alice.email,
            "is_active": True,
            "permissions": {"download": True},
            "series_hide_from_continue_listening": ["s2", "s1"],
        }
        assert not policy.apply_update(session, alice, payload, admin)
        assert snapshot(alice) == before

    def test_falsy_required_fields_are_ignored(self, policy, session, alice, admin):
        payload = {"username": "", "email": "", "role": None, "credential_hash": ""}
        assert not policy.apply_update(session, alice, payload, admin)
        assert alice.username == "alice"
        assert alice.email == "alice@example.com"


class TestFieldChanges:
    def test_username_change_requests_new_token(self, policy, session, alice, admin):
        outcome = policy.apply_update(session, alice, {"username": "alicia"}, admin)

        assert outcome.changed is True
        assert outcome.regenerate_token is True
        assert alice.username == "alicia"

    def test_email_change_keeps_token(self, policy, session, alice, admin):
        outcome = policy.apply_update(session, alice, {"email": "a@b.io"}, admin)
        assert outcome
        assert outcome.regenerate_token is False

    def test_explicit_false_flag_is_applied(self, policy, session, alice, admin):
        assert policy.apply_update(session, alice, {"is_active": False}, admin)
        assert alice.is_active is False
        assert alice.can_download is False

    def test_lock_account(self, policy, session, alice, admin):
        assert policy.apply_update(session, alice, {"is_locked": True}, admin)
        assert alice.is_locked is True

    def test_role_change(self, policy, session, alice, admin):
        assert policy.apply_update(session, alice, {"role": "guest"}, admin)
        assert alice.role == "guest"

    def test_unknown_role_is_invalid(self, policy, session, alice, admin):
        with pytest.raises(Invalid):
            policy.apply_update(session, alice, {"role": "superuser"}, admin)
        assert alice.role == "user"

    def test_series_list_compared_by_members(self, policy, session, alice, admin):
        assert policy.apply_update(
            session, alice, {"series_hide_from_continue_listening": ["s1", "s3"]}, admin
        )
        assert alice.series_hide_from_continue_listening == ["s1", "s3"]

    def test_permission_grant_overwritten(self, policy, session, alice, admin):
        assert policy.apply_update(session, alice, {"permissions": {"delete": True}}, admin)
        assert alice.can_delete is True
        assert alice.permissions["download"] is True


class TestRejectedPayloads:
    def test_plaintext_password_is_invalid(self, policy, session, alice, admin):
        with pytest.raises(Invalid):
            policy.apply_update(session, alice, {"password": "hunter2"}, admin)

    def test_unknown_field_is_invalid(self, policy, session, alice, admin):
        with pytest.raises(Invalid):
            policy.apply_update(session, alice, {"token": "forged"}, admin)

    def test_unknown_permission_is_invalid(self, policy, session, alice, admin):
        before = snapshot(alice)
        with pytest.raises(Invalid):
            policy.apply_update(
                session, alice, {"username": "alicia", "permissions": {"admin": True}}, admin
            )
        assert snapshot(alice) == before

    def test_non_boolean_permission_is_invalid(self, policy, session, alice, admin):
        with pytest.raises(Invalid):
            policy.apply_update(session, alice, {"permissions": {"download": "yes"}}, admin)

    def test_username_conflict_leaves_record_unchanged(
        self, policy, repo, session, alice, admin
    ):
        repo.get_by_username.return_value = build_user("bob")
        before = snapshot(alice)

        with pytest.raises(Conflict):
            policy.apply_update(
                session,
                alice,
                {"username": "bob", "email": "new@example.com", "is_active": False},
                admin,
            )
        assert snapshot(alice) == before

    def test_case_only_rename_of_self_is_allowed(self, policy, repo, session, alice, admin):
        repo.get_by_username.return_value = alice
        assert policy.apply_update(session, alice, {"username": "Alice"}, admin)
        assert alice.username == "Alice"


class TestRootAccount:
    def test_admin_cannot_update_root(self, policy, session, root, admin):
        with pytest.raises(Forbidden):
            policy.apply_update(session, root, {"email": "r@x.io"}, admin)

    def test_root_can_update_itself(self, policy, session, root):
        assert policy.apply_update(session, root, {"email": "r@x.io"}, root)

    @pytest.mark.parametrize("payload", [{"is_active": False}, {"is_locked": True}])
    def test_root_cannot_be_deactivated_or_locked(self, policy, session, root, payload):
        with pytest.raises(Invalid):
            policy.apply_update(session, root, payload, root)

    def test_root_cannot_change_role(self, policy, session, root):
        with pytest.raises(Invalid):
            policy.apply_update(session, root, {"role": "admin"}, root)


class TestLibraryScoping:
    def test_access_all_libraries_forces_empty_list(self, policy, session, admin):
        user = build_user(
            "carol",
            permissions={"accessAllLibraries": False},
            libraries_accessible=["lib_1", "lib_2"],
        )
        outcome = policy.apply_update(
            session,
            user,
            {"permissions": {"accessAllLibraries": True}, "libraries_accessible": ["lib_3"]},
            admin,
        )
        assert outcome
        assert user.libraries_accessible == []
        assert user.permission_set.access_all_libraries is True

    def test_new_list_replaces_old(self, policy, session, admin):
        user = build_user(
            "carol", permissions={"accessAllLibraries": False}, libraries_accessible=["lib_1"]
        )
        assert policy.apply_update(session, user, {"libraries_accessible": ["lib_2"]}, admin)
        assert user.libraries_accessible == ["lib_2"]

    def test_reordered_list_is_not_a_change(self, policy, session, admin):
        user = build_user(
            "carol",
            permissions={"accessAllLibraries": False},
            libraries_accessible=["lib_1", "lib_2"],
        )
        assert not policy.apply_update(
            session, user, {"libraries_accessible": ["lib_2", "lib_1"]}, admin
        )
        assert user.libraries_accessible == ["lib_1", "lib_2"]

    def test_empty_list_clears(self, policy, session, admin):
        user = build_user(
            "carol", permissions={"accessAllLibraries": False}, libraries_accessible=["lib_1"]
        )
        assert policy.apply_update(session, user, {"libraries_accessible": []}, admin)
        assert user.libraries_accessible == []

    def test_omitted_list_is_untouched(self, policy, session, admin):
        user = build_user(
            "carol", permissions={"accessAllLibraries": False}, libraries_accessible=["lib_1"]
        )
        assert not policy.apply_update(session, user, {"libraries_accessible": None}, admin)
        assert user.libraries_accessible == ["lib_1"]


class TestTagScoping:
    def test_scoping_a_fully_tagged_user(self, policy, session, alice, admin):
        outcome = policy.apply_update(
            session,
            alice,
            {"permissions": {"accessAllTags": False}, "item_tags_selected": ["t1", "t2"]},
            admin,
        )
        assert outcome.changed is True
        assert alice.item_tags_selected == ["t1", "t2"]
        assert alice.permission_set.access_all_tags is False
        assert alice.permission_set.selected_tags_not_accessible is False

    def test_supplied_exclusion_flag_is_kept(self, policy, session, alice, admin):
        policy.apply_update(
            session,
            alice,
            {
                "permissions": {"accessAllTags": False, "selectedTagsNotAccessible": True},
                "item_tags_selected": ["t1"],
            },
            admin,
        )
        assert alice.permission_set.selected_tags_not_accessible is True

    def test_clearing_tags_resets_exclusion_flag(self, policy, session, admin):
        user = build_user(
            "carol",
            permissions={"accessAllTags": False, "selectedTagsNotAccessible": True},
            item_tags_selected=["t1"],
        )
        assert policy.apply_update(session, user, {"item_tags_selected": []}, admin)
        assert user.item_tags_selected == []
        assert user.permission_set.selected_tags_not_accessible is False

    def test_granting_all_tags_clears_selection(self, policy, session, admin):
        user = build_user(
            "carol",
            permissions={"accessAllTags": False, "selectedTagsNotAccessible": True},
            item_tags_selected=["t1"],
        )
        assert policy.apply_update(
            session, user, {"permissions": {"accessAllTags": True}}, admin
        )
        assert user.item_tags_selected == []
        assert user.permission_set.selected_tags_not_accessible is False
