import json
import unittest

from mobilelib.errors import ApplicationError, ParseError, ValidationError
from mobilelib.plumbing.common import State
from mobilelib.plumbing.settings import parse_bool, Projection, SettingsProjector

from .plumbing import Recorder


class Store:
    """
    In-memory resource behind a getter and setter pair.
    """

    def __init__(self, resource=None, read_error=None, write_error=None):
        self.resource = resource
        self.read_error = read_error
        self.write_error = write_error
        self.writes = []

    def get(self, ctx, service, callback):
        if self.read_error:
            callback(self.read_error, None)
        else:
            callback(None, self.resource)

    def set(self, ctx, service, resource, callback):
        self.writes.append(resource)
        if self.write_error:
            callback(self.write_error, None)
        else:
            self.resource = resource
            callback(None, None)


TEMPLATE = {"appId": "", "secret": ""}


class TestProjection(unittest.TestCase):

    def setUp(self):
        self.rec = Recorder()

    def auth(self, store, subfield="appId"):
        return Projection(store.get, store.set, "facebook", subfield, TEMPLATE)

    def test_subfield_get_empty(self):
        self.auth(Store([])).get(None, "svc", self.rec)
        self.assertIsNone(self.rec.error)
        self.assertIsNone(self.rec.value)

    def test_subfield_get(self):
        store = Store([{"provider": "microsoft", "appId": "m"},
                       {"provider": "facebook", "appId": "123", "secret": "s"}])
        self.auth(store, "secret").get(None, "svc", self.rec)
        self.assertEqual(self.rec.value, "s")

    def test_subfield_set_new(self):
        store = Store([])
        self.auth(store).set(None, "svc", "123", self.rec)
        self.assertIsNone(self.rec.error)
        self.assertEqual(self.rec.value.state, State.success)
        self.assertEqual(self.rec.value.value, "123")
        self.assertEqual(store.resource, [{"provider": "facebook", "appId": "123", "secret": ""}])

    def test_subfield_set_null_resource(self):
        store = Store(None)
        self.auth(store).set(None, "svc", "123", self.rec)
        self.assertEqual(store.resource, [{"provider": "facebook", "appId": "123", "secret": ""}])

    def test_subfield_set_existing(self):
        original = [{"provider": "google", "appId": "g", "secret": "gs"},
                    {"provider": "facebook", "appId": "old", "secret": "fs"}]
        store = Store(original)
        self.auth(store).set(None, "svc", "new", self.rec)
        self.assertEqual(store.resource, [{"provider": "google", "appId": "g", "secret": "gs"},
                                          {"provider": "facebook", "appId": "new", "secret": "fs"}])
        self.assertEqual(original[1]["appId"], "old")

    def test_subfield_not_list(self):
        store = Store({"provider": "facebook"})
        self.auth(store).set(None, "svc", "123", self.rec)
        self.assertIsInstance(self.rec.error, ParseError)
        self.assertEqual(store.writes, [])

    def test_subfield_get_not_list(self):
        self.auth(Store("facebook")).get(None, "svc", self.rec)
        self.assertIsInstance(self.rec.error, ParseError)

    def test_flat_get(self):
        store = Store({"dynamicSchemaEnabled": False})
        Projection(store.get, store.set, "dynamicSchemaEnabled").get(None, "svc", self.rec)
        self.assertIs(self.rec.value, False)

    def test_flat_get_missing(self):
        store = Store({})
        Projection(store.get, store.set, "dynamicSchemaEnabled").get(None, "svc", self.rec)
        self.assertIsNone(self.rec.value)

    def test_flat_set_parsed(self):
        store = Store({"dynamicSchemaEnabled": False, "other": 1})
        projection = Projection(store.get, store.set, "dynamicSchemaEnabled", parse=parse_bool)
        projection.set(None, "svc", "true", self.rec)
        self.assertEqual(store.resource, {"dynamicSchemaEnabled": True, "other": 1})

    def test_flat_set_invalid(self):
        store = Store({"dynamicSchemaEnabled": False})
        projection = Projection(store.get, store.set, "dynamicSchemaEnabled", parse=parse_bool)
        projection.set(None, "svc", "yes", self.rec)
        self.assertIsInstance(self.rec.error, ValidationError)
        self.assertEqual(store.writes, [])

    def test_read_error(self):
        store = Store(read_error=ApplicationError(404))
        self.auth(store).set(None, "svc", "123", self.rec)
        self.assertIsInstance(self.rec.error, ApplicationError)
        self.assertEqual(store.writes, [])

    def test_write_error(self):
        store = Store([], write_error=ApplicationError(500))
        self.auth(store).set(None, "svc", "123", self.rec)
        self.assertEqual(self.rec.error.status, 500)


class TestParseBool(unittest.TestCase):

    def test_values(self):
        self.assertIs(parse_bool("true"), True)
        self.assertIs(parse_bool("false"), False)
        self.assertIs(parse_bool(True), True)

    def test_invalid(self):
        for value in ("True", "1", "", None):
            with self.assertRaises(ValidationError):
                parse_bool(value)


class TestSettingsProjector(unittest.TestCase):

    def setUp(self):
        self.store = Store([])
        self.projector = SettingsProjector({
            "facebookClientId": Projection(self.store.get, self.store.set, "facebook", "appId",
                                           TEMPLATE),
            "facebookClientSecret": Projection(self.store.get, self.store.set, "facebook",
                                               "secret", TEMPLATE),
        })

    def test_keys(self):
        self.assertEqual(self.projector.keys, ("facebookClientId", "facebookClientSecret"))

    def test_set_then_get(self):
        self.projector.set(None, "svc", "facebookClientId", "123", Recorder())
        self.projector.set(None, "svc", "facebookClientSecret", "shh", Recorder())
        rec = Recorder()
        self.projector.get(None, "svc", "facebookClientSecret", rec)
        self.assertEqual(rec.value, "shh")
        self.assertEqual(self.store.resource,
                         [{"provider": "facebook", "appId": "123", "secret": "shh"}])

    def test_set_twice(self):
        self.store.resource = [{"provider": "google", "appId": "g", "secret": "gs"}]
        self.projector.set(None, "svc", "facebookClientId", "123", Recorder())
        once = json.dumps(self.store.resource)
        self.projector.set(None, "svc", "facebookClientId", "123", Recorder())
        self.assertEqual(json.dumps(self.store.resource), once)
        providers = [record["provider"] for record in self.store.resource]
        self.assertEqual(providers, ["google", "facebook"])

    def test_set_current_value(self):
        original = [{"provider": "google", "appId": "g", "secret": "gs"},
                    {"provider": "facebook", "appId": "123", "secret": "shh"}]
        self.store.resource = original
        rec = Recorder()
        self.projector.get(None, "svc", "facebookClientSecret", rec)
        self.projector.set(None, "svc", "facebookClientSecret", rec.value, Recorder())
        self.assertEqual(self.store.writes, [original])

    def test_other_provider_only(self):
        self.store.resource = [{"provider": "twitter", "appId": "a"}]
        rec = Recorder()
        self.projector.get(None, "svc", "facebookClientId", rec)
        self.assertIsNone(rec.error)
        self.assertIsNone(rec.value)
        self.projector.set(None, "svc", "facebookClientId", "x", Recorder())
        self.assertEqual(self.store.resource,
                         [{"provider": "twitter", "appId": "a"},
                          {"provider": "facebook", "appId": "x", "secret": ""}])

    def test_unknown_key(self):
        rec = Recorder()
        self.projector.get(None, "svc", "twitterClientId", rec)
        self.assertIsInstance(rec.error, ValidationError)
        self.assertIn("facebookClientId", str(rec.error))

    def test_unknown_key_set(self):
        rec = Recorder()
        self.projector.set(None, "svc", "twitterClientId", "x", rec)
        self.assertIsInstance(rec.error, ValidationError)
        self.assertEqual(self.store.writes, [])


if __name__ == "__main__":
    unittest.main()
