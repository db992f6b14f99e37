"""
backend/test_project_lifecycle.py

Project lifecycle against a real SQLite database: creation, field updates,
collaborator reconciliation, leaving (left / transferred / deleted), member
removal and deletion.

Every test also checks the membership ledger: a user has a project in their
project list exactly when they are its owner or a collaborator.

Run:
    pytest backend/test_project_lifecycle.py -v
"""

from unittest.mock import patch

import pytest

from backend import membership
from backend.boards import add_image
from backend.errors import AccessDenied, InvalidCollaborator, InvalidInput, Internal, NotFound
from backend.membership import user_project_ids
from backend.models import LeaveOutcome, MemberRole, Priority, Visibility
from backend.notes import save_note
from backend.projects import (
    create_project,
    delete_project,
    get_project_by_slug,
    leave_project,
    list_projects_for_user,
    load_project,
    member_summaries,
    reconcile_collaborators,
    remove_member,
    update_project,
)
from backend.tasks import append_task


def _count(conn, table):
    return conn.execute(f"SELECT COUNT(*) AS n FROM {table}").fetchone()["n"]


# ============================================================================
# Create
# ============================================================================

class TestCreate:
    def test_owner_only_project(self, conn, make_user, consistent):
        alice = make_user("alice")
        project = create_project(conn, alice.id, "Thesis")

        assert project.owner_id == alice.id
        assert project.collaborator_ids == []
        assert project.slug == "thesis"
        assert project.icon == "🚀"
        assert project.visibility == Visibility.private
        assert project.priority == Priority.medium
        assert user_project_ids(conn, alice.id) == [project.id]
        consistent()

    def test_collaborators_deduped_and_owner_excluded(self, conn, make_user, consistent):
        alice, bob, carol = make_user("alice"), make_user("bob"), make_user("carol")
        project = create_project(conn, alice.id, "Band", [bob.id, alice.id, bob.id, carol.id])

        assert project.collaborator_ids == [bob.id, carol.id]
        assert alice.id not in project.collaborator_ids
        for user in (alice, bob, carol):
            assert project.id in user_project_ids(conn, user.id)
        consistent()

    def test_unknown_collaborator_rejected_without_writes(self, conn, make_user, consistent):
        alice = make_user("alice")
        with pytest.raises(InvalidCollaborator) as exc_info:
            create_project(conn, alice.id, "Ghosts", [999])

        assert exc_info.value.reason == "Invalid collaborator detected"
        assert _count(conn, "projects") == 0
        assert user_project_ids(conn, alice.id) == []
        consistent()

    @pytest.mark.parametrize("name", ["", "   ", None, 42])
    def test_name_required(self, conn, make_user, name):
        alice = make_user("alice")
        with pytest.raises(InvalidInput):
            create_project(conn, alice.id, name)
        assert _count(conn, "projects") == 0

    @pytest.mark.parametrize("collaborators", ["2", 2, [True], ["2"]])
    def test_collaborators_must_be_id_list(self, conn, make_user, collaborators):
        alice = make_user("alice")
        with pytest.raises(InvalidInput):
            create_project(conn, alice.id, "Thesis", collaborators)

    def test_metadata_applied(self, conn, make_user):
        alice = make_user("alice")
        project = create_project(
            conn,
            alice.id,
            "Thesis",
            metadata={"visibility": "public", "priority": "high", "links": ["https://a.example"], "deadline": "2026-12-01"},
        )
        assert project.visibility == Visibility.public
        assert project.priority == Priority.high
        assert project.links == ["https://a.example"]
        assert project.deadline == "2026-12-01"

    @pytest.mark.parametrize(
        "metadata",
        [
            {"visibility": "secret"},
            {"priority": "urgent"},
            {"deadline": "next tuesday"},
            {"links": "https://a.example"},
            {"collaborators": [2]},
            {"name": "Other"},
        ],
    )
    def test_bad_metadata_rejected(self, conn, make_user, metadata):
        alice = make_user("alice")
        with pytest.raises(InvalidInput):
            create_project(conn, alice.id, "Thesis", metadata=metadata)
        assert _count(conn, "projects") == 0

    def test_member_summaries_owner_first(self, conn, make_user):
        alice, bob = make_user("alice", "Alice A"), make_user("bob", "Bob B")
        project = create_project(conn, alice.id, "Thesis", [bob.id])
        summaries = member_summaries(conn, project)
        assert summaries == [
            {"id": alice.id, "username": "alice", "full_name": "Alice A", "role": "owner"},
            {"id": bob.id, "username": "bob", "full_name": "Bob B", "role": "collaborator"},
        ]


# ============================================================================
# Read
# ============================================================================

class TestRead:
    def test_private_project_hidden_from_strangers(self, conn, make_user):
        alice, eve = make_user("alice"), make_user("eve")
        create_project(conn, alice.id, "Secret")
        with pytest.raises(AccessDenied):
            get_project_by_slug(conn, "secret", eve.id)

    def test_public_project_readable(self, conn, make_user):
        alice, eve = make_user("alice"), make_user("eve")
        create_project(conn, alice.id, "Open", metadata={"visibility": "public"})
        assert get_project_by_slug(conn, "open", eve.id).name == "Open"

    def test_unknown_slug(self, conn, make_user):
        alice = make_user("alice")
        with pytest.raises(NotFound):
            get_project_by_slug(conn, "nope", alice.id)

    def test_list_contains_owned_and_shared(self, conn, make_user):
        alice, bob = make_user("alice"), make_user("bob")
        mine = create_project(conn, alice.id, "Mine")
        shared = create_project(conn, bob.id, "Shared", [alice.id])
        create_project(conn, bob.id, "Not mine")

        ids = {p.id for p in list_projects_for_user(conn, alice.id)}
        assert ids == {mine.id, shared.id}

    def test_list_most_recently_updated_first(self, conn, make_user, clock):
        alice = make_user("alice")

        older = create_project(conn, alice.id, "Older")
        clock.moment = clock.moment.replace(microsecond=500000)
        newer = create_project(conn, alice.id, "Newer")

        assert [p.id for p in list_projects_for_user(conn, alice.id)] == [newer.id, older.id]


# ============================================================================
# Update
# ============================================================================

class TestUpdate:
    def test_rename_keeps_slug(self, conn, make_user):
        alice = make_user("alice")
        project = create_project(conn, alice.id, "Draft Title")
        updated = update_project(conn, project.id, alice.id, {"name": "Final Title", "icon": "📚"})
        assert updated.name == "Final Title"
        assert updated.icon == "📚"
        assert updated.slug == "draft-title"

    def test_collaborator_may_edit(self, conn, make_user):
        alice, bob = make_user("alice"), make_user("bob")
        project = create_project(conn, alice.id, "Thesis", [bob.id])
        assert update_project(conn, project.id, bob.id, {"subject": "Biology"}).subject == "Biology"

    def test_stranger_denied_even_on_public(self, conn, make_user):
        alice, eve = make_user("alice"), make_user("eve")
        project = create_project(conn, alice.id, "Open", metadata={"visibility": "public"})
        with pytest.raises(AccessDenied):
            update_project(conn, project.id, eve.id, {"name": "Hijacked"})
        assert load_project(conn, project.id).name == "Open"

    @pytest.mark.parametrize("fields", [{"slug": "x"}, {"collaborators": []}, {"owner": 1}, {"name": "  "}])
    def test_disallowed_fields(self, conn, make_user, fields):
        alice = make_user("alice")
        project = create_project(conn, alice.id, "Thesis")
        with pytest.raises(InvalidInput):
            update_project(conn, project.id, alice.id, fields)

    def test_missing_project(self, conn, make_user):
        alice = make_user("alice")
        with pytest.raises(NotFound):
            update_project(conn, 999, alice.id, {"name": "x"})


# ============================================================================
# Reconcile collaborators
# ============================================================================

class TestReconcile:
    def test_added_and_removed_users_follow(self, conn, make_user, consistent):
        alice, bob, carol, dave = (make_user(n) for n in ("alice", "bob", "carol", "dave"))
        project = create_project(conn, alice.id, "Band", [bob.id, carol.id])

        updated = reconcile_collaborators(conn, project.id, alice.id, [carol.id, dave.id, alice.id])

        assert updated.collaborator_ids == [carol.id, dave.id]
        assert updated.owner_id == alice.id
        assert project.id not in user_project_ids(conn, bob.id)
        assert project.id in user_project_ids(conn, carol.id)
        assert project.id in user_project_ids(conn, dave.id)
        consistent()

    def test_unknown_id_leaves_state_unchanged(self, conn, make_user, consistent):
        alice, bob = make_user("alice"), make_user("bob")
        project = create_project(conn, alice.id, "Band", [bob.id])

        with pytest.raises(InvalidCollaborator):
            reconcile_collaborators(conn, project.id, alice.id, [999])

        assert load_project(conn, project.id).collaborator_ids == [bob.id]
        assert project.id in user_project_ids(conn, bob.id)
        consistent()

    def test_collaborator_may_reconcile(self, conn, make_user, consistent):
        alice, bob, carol = make_user("alice"), make_user("bob"), make_user("carol")
        project = create_project(conn, alice.id, "Band", [bob.id])
        updated = reconcile_collaborators(conn, project.id, bob.id, [bob.id, carol.id])
        assert updated.collaborator_ids == [bob.id, carol.id]
        consistent()

    def test_stranger_denied(self, conn, make_user):
        alice, eve = make_user("alice"), make_user("eve")
        project = create_project(conn, alice.id, "Band")
        with pytest.raises(AccessDenied):
            reconcile_collaborators(conn, project.id, eve.id, [eve.id])
        assert load_project(conn, project.id).collaborator_ids == []

    def test_half_written_ledger_rolls_back(self, conn, make_user, consistent):
        alice, bob, carol = make_user("alice"), make_user("bob"), make_user("carol")
        project = create_project(conn, alice.id, "Band", [bob.id])

        # Membership rows land but the back-reference write is lost
        with patch.object(membership, "link_user", lambda *args: None):
            with pytest.raises(Internal):
                reconcile_collaborators(conn, project.id, alice.id, [bob.id, carol.id])

        assert load_project(conn, project.id).collaborator_ids == [bob.id]
        assert user_project_ids(conn, carol.id) == []
        consistent()


# ============================================================================
# Leave
# ============================================================================

class TestLeave:
    def test_owner_with_collaborators_transfers_to_first(self, conn, make_user, consistent):
        alice, bob, carol = make_user("alice"), make_user("bob"), make_user("carol")
        project = create_project(conn, alice.id, "Band", [bob.id, carol.id])

        result = leave_project(conn, project.id, alice.id)

        assert result.outcome == LeaveOutcome.transferred
        assert result.new_owner_id == bob.id
        assert result.project.owner_id == bob.id
        assert result.project.collaborator_ids == [carol.id]
        assert result.project.role_of(bob.id) == MemberRole.owner
        assert project.id not in user_project_ids(conn, alice.id)
        assert project.id in user_project_ids(conn, bob.id)
        consistent()

    def test_sole_owner_deletes_project(self, conn, make_user, consistent):
        alice = make_user("alice")
        project = create_project(conn, alice.id, "Solo")
        append_task(conn, project.id, alice.id, "Draft")
        save_note(conn, project.id, alice.id, "notes")
        add_image(conn, project.id, alice.id, "https://cdn.example/a.png", "boards/a")

        result = leave_project(conn, project.id, alice.id)

        assert result.outcome == LeaveOutcome.deleted
        assert result.project is None
        assert result.removed_media == ["boards/a"]
        with pytest.raises(NotFound):
            load_project(conn, project.id)
        assert list_projects_for_user(conn, alice.id) == []
        assert user_project_ids(conn, alice.id) == []
        for table in ("tasks", "notes", "board_images", "project_members"):
            assert _count(conn, table) == 0
        consistent()

    def test_collaborator_leaves_project_persists(self, conn, make_user, consistent):
        alice, bob = make_user("alice"), make_user("bob")
        project = create_project(conn, alice.id, "Band", [bob.id])

        result = leave_project(conn, project.id, bob.id)

        assert result.outcome == LeaveOutcome.left
        assert result.project.owner_id == alice.id
        assert result.project.collaborator_ids == []
        assert user_project_ids(conn, bob.id) == []
        assert user_project_ids(conn, alice.id) == [project.id]
        consistent()

    def test_non_member_denied(self, conn, make_user):
        alice, eve = make_user("alice"), make_user("eve")
        project = create_project(conn, alice.id, "Open", metadata={"visibility": "public"})
        with pytest.raises(AccessDenied):
            leave_project(conn, project.id, eve.id)

    def test_missing_project(self, conn, make_user):
        alice = make_user("alice")
        with pytest.raises(NotFound):
            leave_project(conn, 999, alice.id)


# ============================================================================
# Remove member / delete
# ============================================================================

class TestRemoveMember:
    def test_owner_removes_collaborator(self, conn, make_user, consistent):
        alice, bob, carol = make_user("alice"), make_user("bob"), make_user("carol")
        project = create_project(conn, alice.id, "Band", [bob.id, carol.id])

        updated = remove_member(conn, project.id, alice.id, bob.id)

        assert updated.collaborator_ids == [carol.id]
        assert user_project_ids(conn, bob.id) == []
        consistent()

    def test_non_collaborator_is_noop(self, conn, make_user, consistent):
        alice, bob, eve = make_user("alice"), make_user("bob"), make_user("eve")
        project = create_project(conn, alice.id, "Band", [bob.id])
        before = load_project(conn, project.id)

        after = remove_member(conn, project.id, alice.id, eve.id)

        assert after == before
        consistent()

    def test_owner_cannot_be_removed(self, conn, make_user):
        alice = make_user("alice")
        project = create_project(conn, alice.id, "Band")
        assert remove_member(conn, project.id, alice.id, alice.id).owner_id == alice.id

    def test_collaborator_cannot_remove(self, conn, make_user):
        alice, bob, carol = make_user("alice"), make_user("bob"), make_user("carol")
        project = create_project(conn, alice.id, "Band", [bob.id, carol.id])
        with pytest.raises(AccessDenied) as exc_info:
            remove_member(conn, project.id, bob.id, carol.id)
        assert exc_info.value.reason == "Only the project owner can do this"


class TestDelete:
    def test_owner_deletes_everything(self, conn, make_user, consistent):
        alice, bob = make_user("alice"), make_user("bob")
        project = create_project(conn, alice.id, "Band", [bob.id])
        add_image(conn, project.id, bob.id, "https://cdn.example/b.png", "boards/b")

        media = delete_project(conn, project.id, alice.id)

        assert media == ["boards/b"]
        assert user_project_ids(conn, alice.id) == []
        assert user_project_ids(conn, bob.id) == []
        assert _count(conn, "projects") == 0
        consistent()

    def test_collaborator_cannot_delete(self, conn, make_user):
        alice, bob = make_user("alice"), make_user("bob")
        project = create_project(conn, alice.id, "Band", [bob.id])
        with pytest.raises(AccessDenied):
            delete_project(conn, project.id, bob.id)
        assert load_project(conn, project.id).owner_id == alice.id
