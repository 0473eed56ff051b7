"""
Pytest suite for local_store.py: key-value backed multi-user and demo stores.
"""
import json
from datetime import datetime

import pytest

from entities import Project
from local_store import (
    DEFAULT_ADMIN_EMAIL,
    DEFAULT_ADMIN_ID,
    DEMO_USER_ID,
    DemoStore,
    JsonFileStorage,
    LocalStore,
    MemoryStorage,
)

from conftest import make_entry


@pytest.fixture
def alice(local_store: LocalStore) -> LocalStore:
    uid = local_store.create_auth_user("alice@example.com", "hash")
    store = local_store.for_user(uid)
    store.create_profile(uid, "alice@example.com")
    return store


@pytest.fixture
def bob(local_store: LocalStore) -> LocalStore:
    uid = local_store.create_auth_user("bob@example.com", "hash")
    store = local_store.for_user(uid)
    store.create_profile(uid, "bob@example.com")
    return store


class TestSeeding:
    def test_default_admin_credentials_seeded(self, local_store: LocalStore):
        creds = local_store.get_login_credentials(DEFAULT_ADMIN_EMAIL.upper())
        assert creds is not None
        assert creds[0] == DEFAULT_ADMIN_ID

    def test_demo_projects_seeded_once(self, alice: LocalStore):
        projects = alice.get_projects()
        assert [p.name for p in projects] == ["Reception Ingresso", "Pattuglia Esterna"]
        assert all(p.user_id == alice.current_user_id for p in projects)
        for p in projects:
            alice.delete_project(p.id)
        assert alice.get_projects() == []

    def test_corrupt_collection_reads_as_empty(self, storage: MemoryStorage, alice: LocalStore):
        storage.set_item("cronosheet_mock_entries", "{not json")
        assert alice.get_entries() == []


class TestProfiles:
    def test_new_local_profiles_wait_for_approval(self, alice: LocalStore):
        p = alice.get_profile(alice.current_user_id)
        assert p.is_approved is False
        assert p.role == "user"
        assert p.subscription_status == "trial"

    def test_admin_approves_pending_profile(self, local_store: LocalStore, alice: LocalStore):
        admin = local_store.for_user(DEFAULT_ADMIN_ID)
        admin.update_profile_admin(alice.current_user_id, is_approved=True)
        assert alice.get_profile(alice.current_user_id).is_approved is True

    def test_create_profile_is_idempotent(self, alice: LocalStore):
        first = alice.get_profile(alice.current_user_id)
        again = alice.create_profile(alice.current_user_id, "other@example.com")
        assert again.email == first.email
        assert len(alice.for_user(DEFAULT_ADMIN_ID).get_all_profiles()) == 2

    def test_duplicate_email_rejected(self, local_store: LocalStore, alice: LocalStore):
        with pytest.raises(ValueError, match="already registered"):
            local_store.create_auth_user("ALICE@example.com", "hash")

    def test_admin_operations(self, local_store: LocalStore, alice: LocalStore):
        admin = local_store.for_user(DEFAULT_ADMIN_ID)
        admin.update_profile_admin(alice.current_user_id, subscription_status="elite")
        assert alice.get_profile(alice.current_user_id).subscription_status == "elite"
        profiles = admin.get_all_profiles()
        assert profiles[0].email == "alice@example.com"

    def test_non_admin_is_refused(self, alice: LocalStore, bob: LocalStore):
        assert alice.get_all_profiles() == []
        with pytest.raises(ValueError, match="Only admin"):
            alice.update_profile_admin(bob.current_user_id, is_approved=False)
        with pytest.raises(ValueError, match="Only admin"):
            alice.delete_profile_admin(bob.current_user_id)

    def test_delete_user_removes_their_data(self, local_store: LocalStore, alice: LocalStore):
        alice.get_projects()
        admin = local_store.for_user(DEFAULT_ADMIN_ID)
        admin.delete_profile_admin(alice.current_user_id)
        assert local_store.get_login_credentials("alice@example.com") is None
        assert alice.get_profile(alice.current_user_id) is None


class TestProjectsAndEntries:
    def test_owner_isolation(self, alice: LocalStore, bob: LocalStore):
        alice_projects = alice.get_projects()
        bob_projects = bob.get_projects()
        assert {p.id for p in alice_projects}.isdisjoint({p.id for p in bob_projects})
        target = alice_projects[0]
        assert bob.save_project(Project(id=target.id, name="Mine now")) is None
        assert bob.save_entry(make_entry(target.id, datetime(2024, 6, 10, 8), 1)) is None

    def test_save_and_update_project(self, alice: LocalStore):
        alice.get_projects()
        saved = alice.save_project(Project(id="p-new", name="Magazzino", default_hourly_rate=11.0))
        assert saved.user_id == alice.current_user_id
        alice.save_project(Project(id="p-new", name="Magazzino Sud", default_hourly_rate=11.0))
        names = [p.name for p in alice.get_projects()]
        assert names.count("Magazzino Sud") == 1
        assert "Magazzino" not in names

    def test_entries_newest_first_and_cascade(self, alice: LocalStore):
        project = alice.get_projects()[0]
        alice.save_entry(make_entry(project.id, datetime(2024, 6, 1, 8), 1, entry_id="old"))
        alice.save_entry(make_entry(project.id, datetime(2024, 6, 9, 8), 1, entry_id="new"))
        assert [e.id for e in alice.get_entries()] == ["new", "old"]
        alice.delete_project(project.id)
        assert alice.get_entries() == []

    def test_update_and_delete_entry(self, alice: LocalStore):
        project = alice.get_projects()[0]
        e = make_entry(project.id, datetime(2024, 6, 1, 8), 1, entry_id="e1")
        alice.save_entry(e)
        e.description = "Cambio turno"
        alice.save_entry(e)
        (got,) = alice.get_entries()
        assert got.description == "Cambio turno"
        alice.delete_entry("e1")
        assert alice.get_entries() == []

    def test_documents_use_camel_case(self, storage: MemoryStorage, alice: LocalStore):
        project = alice.get_projects()[0]
        alice.save_entry(make_entry(project.id, datetime(2024, 6, 1, 8), 1))
        doc = json.loads(storage.get_item("cronosheet_mock_entries"))[0]
        assert doc["projectId"] == project.id
        assert "startTime" in doc and "hourlyRate" in doc
        assert doc["user_id"] == alice.current_user_id


class TestDemoStore:
    def test_single_demo_user(self):
        store = DemoStore(MemoryStorage())
        profile = store.demo_profile()
        assert profile.id == DEMO_USER_ID
        assert profile.is_approved
        assert store.for_user("anyone") is store
        assert len(store.get_projects()) == 2


class TestJsonFileStorage:
    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "data" / "local_storage.json"
        JsonFileStorage(path).set_item("k", "v")
        again = JsonFileStorage(path)
        assert again.get_item("k") == "v"
        again.remove_item("k")
        assert JsonFileStorage(path).get_item("k") is None

    def test_missing_file_is_empty(self, tmp_path):
        assert JsonFileStorage(tmp_path / "nope.json").get_item("k") is None
