from pymongo.errors import PyMongoError

from src.consular.infra.docstore.mirror import MongoProfileMirror, ProfileMirror, mirror_profile, set_profile_mirror
from src.consular.services.profiles.service import profile_service
from src.consular.services.users.service import user_service


class FakeCollection:
    def __init__(self):
        self.documents = {}

    def replace_one(self, selector, document, upsert=False):
        assert upsert is True
        self.documents[selector["_id"]] = document


class BrokenCollection:
    def replace_one(self, selector, document, upsert=False):
        raise PyMongoError("connection refused")


class ExplodingMirror(ProfileMirror):
    def upsert_user(self, user):
        raise RuntimeError("mirror down")

    def upsert_profile(self, profile):
        raise RuntimeError("mirror down")


def test_user_and_profile_writes_are_mirrored():
    users, profiles = FakeCollection(), FakeCollection()
    set_profile_mirror(MongoProfileMirror(users, profiles))

    user = user_service.register_user(email="marie@example.com")
    profile = profile_service.create_profile(user, {"first_name": "Marie", "last_name": "Nguema"})

    mirrored_user = users.documents[str(user.id)]
    assert mirrored_user["email"] == "marie@example.com"
    assert mirrored_user["profile_id"] == str(profile.id)
    assert "id" not in mirrored_user
    assert profiles.documents[str(profile.id)]["status"] == "DRAFT"


def test_repeated_writes_replace_the_mirrored_copy():
    users, profiles = FakeCollection(), FakeCollection()
    set_profile_mirror(MongoProfileMirror(users, profiles))
    user = user_service.register_user(email="marie@example.com")
    profile_service.create_profile(user, {"first_name": "Marie", "last_name": "Nguema"})

    profile_service.update_own_profile(user, {"nationality": "GA"})

    assert len(profiles.documents) == 1
    assert next(iter(profiles.documents.values()))["nationality"] == "GA"


def test_mongo_errors_are_swallowed():
    set_profile_mirror(MongoProfileMirror(BrokenCollection(), BrokenCollection()))

    user = user_service.register_user(email="marie@example.com")
    profile = profile_service.create_profile(user, {"first_name": "Marie", "last_name": "Nguema"})

    assert profile.user_id == user.id


def test_failing_mirror_never_breaks_the_write():
    set_profile_mirror(ExplodingMirror())

    user = user_service.register_user(email="marie@example.com")
    profile = profile_service.create_profile(user, {"first_name": "Marie", "last_name": "Nguema"})
    mirror_profile(profile)

    assert profile_service.get_own_profile(user).id == profile.id
