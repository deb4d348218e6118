import base64
import os
import re
import tempfile
import unittest

from mobilelib.errors import ApplicationError, ValidationError
from mobilelib.plumbing.common import State
from mobilelib.tasks import config, jobs, scripts, table

from .plumbing import FakeHTTP, make_context, Recorder, response, service_path


class TasksTestCase(unittest.TestCase):

    def setUp(self):
        self.http = FakeHTTP()
        self.ctx = make_context(self.http)
        self.rec = Recorder()

    def requests(self):
        return [(request.method, request.path) for request in self.http.requests]


class TestPermissions(unittest.TestCase):

    def test_parse(self):
        self.assertEqual(table.parse_permissions("insert=public, read=user"),
                         {"insert": "public", "read": "user"})

    def test_parse_wildcard(self):
        self.assertEqual(table.parse_permissions("*=admin,read=public"),
                         {"insert": "admin", "read": "public", "update": "admin",
                          "delete": "admin"})

    def test_parse_empty(self):
        self.assertEqual(table.parse_permissions(None), {})

    def test_parse_invalid(self):
        for spec in ("insert", "insert=owner", "create=user", "read=user=admin"):
            with self.assertRaises(ValidationError):
                table.parse_permissions(spec)


class TestTables(TasksTestCase):

    def test_create(self):
        self.http.route("POST", service_path("tables"), response(201))
        table.create_table(self.ctx, "svc", "items", "read=public", callback=self.rec)
        self.ctx.run()
        self.assertEqual(self.rec.value.state, State.created)
        self.assertEqual(self.http.requests[0].json, {"name": "items", "insert": "application",
                                                      "read": "public", "update": "application",
                                                      "delete": "application"})

    def test_create_invalid(self):
        table.create_table(self.ctx, "svc", "items", "read=everyone", callback=self.rec)
        self.assertIsInstance(self.rec.error, ValidationError)
        self.ctx.run()
        self.assertEqual(self.http.requests, [])

    def test_update(self):
        permissions = service_path("tables", "items", "permissions")
        self.http.route("GET", permissions, response(200, dict.fromkeys(table.OPERATIONS,
                                                                         "application")))
        self.http.route("PUT", permissions, response(200))
        self.http.route("PUT", service_path("tables", "items", "indexes", "a"), response(200))
        self.http.route("PUT", service_path("tables", "items", "indexes", "b"), response(200))
        self.http.route("DELETE", service_path("tables", "items", "columns", "c"), response(200))
        table.update_table(self.ctx, "svc", "items", permissions="read=public",
                           add_index="a, b", delete_column="c", callback=self.rec)
        self.ctx.run()
        self.assertIsNone(self.rec.error)
        self.assertTrue(self.rec.value)
        self.assertEqual(self.requests(), [
            ("GET", permissions),
            ("PUT", permissions),
            ("PUT", service_path("tables", "items", "indexes", "a")),
            ("PUT", service_path("tables", "items", "indexes", "b")),
            ("DELETE", service_path("tables", "items", "columns", "c")),
        ])
        self.assertEqual(self.http.requests[1].json, {"insert": "application", "read": "public",
                                                      "update": "application",
                                                      "delete": "application"})

    def test_update_order(self):
        plan = table.update_plan(self.ctx, "svc", "items", permissions="*=admin", add_index="a",
                                 delete_index="b", delete_column="c")
        self.assertEqual([step.progress for step in plan],
                         ["Updating permissions", "Deleting index b", "Adding index a",
                          "Deleting column c"])

    def test_update_partial_failure(self):
        self.http.route("PUT", service_path("tables", "items", "indexes", "b"), response(200))
        table.update_table(self.ctx, "svc", "items", add_index="a,b", callback=self.rec)
        self.ctx.run()
        self.assertEqual(str(self.rec.error),
                         "Not all update operations completed successfully (1 of 2 failed)")

    def test_update_nothing(self):
        table.update_table(self.ctx, "svc", "items", callback=self.rec)
        self.assertIsInstance(self.rec.error, ValidationError)


class TestConfig(TasksTestCase):

    def setUp(self):
        super().setUp()
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

    def certificate(self, content=b"\x00pkcs12"):
        path = os.path.join(self.tmp.name, "cert.pfx")
        with open(path, "wb") as cert:
            cert.write(content)
        return path

    def test_list(self):
        self.http.route("GET", service_path("settings"), response(200, {"dynamicSchemaEnabled":
                                                                        True}))
        self.http.route("GET", service_path("livesettings"),
                        response(200, {"clientID": "cid", "clientSecret": ""}))
        self.http.route("GET", service_path("authsettings"),
                        response(200, [{"provider": "facebook", "appId": "fb", "secret": "s"}]))
        self.http.route("GET", service_path("apns", "settings"),
                        response(500, {"error": "Broken"}))
        config.list_settings(self.ctx, "svc", self.rec)
        self.ctx.run()
        self.assertEqual(len(self.http.requests), 4)
        self.assertEqual(self.rec.value, {
            "dynamicSchemaEnabled": "true",
            "microsoftAccountClientSecret": config.NOT_CONFIGURED,
            "microsoftAccountClientId": "cid",
            "microsoftAccountPackageSID": config.NOT_CONFIGURED,
            "facebookClientId": "fb",
            "facebookClientSecret": "s",
            "twitterClientId": config.NOT_CONFIGURED,
            "twitterClientSecret": config.NOT_CONFIGURED,
            "googleClientId": config.NOT_CONFIGURED,
            "googleClientSecret": config.NOT_CONFIGURED,
            "apns": config.UNAVAILABLE,
        })

    def test_list_malformed(self):
        self.http.route("GET", service_path("authsettings"), response(200, {"provider": "x"}))
        config.list_settings(self.ctx, "svc", self.rec)
        self.ctx.run()
        self.assertEqual(self.rec.value["googleClientId"], config.UNAVAILABLE)

    def test_set_auth(self):
        auth = service_path("authsettings")
        self.http.route("GET", auth, response(200, []))
        self.http.route("PUT", auth, response(200))
        config.projector().set(self.ctx, "svc", "twitterClientId", "123", self.rec)
        self.ctx.run()
        self.assertEqual(self.requests(), [("GET", auth), ("PUT", auth)])
        self.assertEqual(self.http.requests[1].json,
                         [{"provider": "twitter", "appId": "123", "secret": ""}])

    def test_set_dynamic_schema(self):
        settings = service_path("settings")
        self.http.route("GET", settings, response(200, {"dynamicSchemaEnabled": True}))
        self.http.route("PATCH", settings, response(200))
        config.projector().set(self.ctx, "svc", "dynamicSchemaEnabled", "false", self.rec)
        self.ctx.run()
        self.assertEqual(self.http.requests[1].json, {"dynamicSchemaEnabled": False})

    def test_parse_apns(self):
        path = self.certificate()
        settings = config.parse_apns("dev:pa::ss:{}".format(path))
        self.assertEqual(settings, {"mode": "dev", "password": "pa:ss",
                                    "data": base64.b64encode(b"\x00pkcs12").decode("ascii")})

    def test_parse_apns_invalid(self):
        for value in ("test:pass:cert.pfx", "dev:cert.pfx", ""):
            with self.assertRaises(ValidationError):
                config.parse_apns(value)

    def test_parse_apns_missing_file(self):
        with self.assertRaises(ValidationError):
            config.parse_apns("prod:pass:{}".format(os.path.join(self.tmp.name, "none.pfx")))

    def test_set_apns(self):
        path = self.certificate()
        self.http.route("POST", service_path("apns", "certificates"), response(200))
        config.projector().set(self.ctx, "svc", "apns", "prod:secret:{}".format(path), self.rec)
        self.ctx.run()
        self.assertEqual(self.requests(), [("POST", service_path("apns", "certificates"))])
        self.assertEqual(self.http.requests[0].json["mode"], "prod")
        self.assertEqual(self.rec.value.value, "prod")


class TestScriptNames(unittest.TestCase):

    def test_table(self):
        name = scripts.parse_script_name("table/items.insert.js")
        self.assertEqual(name, scripts.ScriptName("table", "items", "insert"))
        self.assertEqual(name.filename, "table/items.insert.js")
        self.assertEqual(str(name), "table/items.insert")

    def test_scheduler(self):
        name = scripts.parse_script_name("scheduler/cleanup")
        self.assertEqual(name, scripts.ScriptName("scheduler", "cleanup"))
        self.assertEqual(name.filename, "scheduler/cleanup.js")

    def test_shared(self):
        self.assertEqual(scripts.parse_script_name("shared/apnsFeedback.js"),
                         scripts.ScriptName("shared", "apnsFeedback"))

    def test_invalid(self):
        for name in ("table/items.create", "table/items", "shared/other", "jobs/cleanup",
                     "scheduler/cleanup.txt"):
            with self.assertRaises(ValidationError):
                scripts.parse_script_name(name)


class TestScripts(TasksTestCase):

    def test_set_scheduler(self):
        self.http.route("PUT", service_path("scheduler", "jobs", "cleanup", "script"),
                        response(200))
        scripts.set_script(self.ctx, "svc", scripts.ScriptName("scheduler", "cleanup"),
                           "function cleanup() {}", self.rec)
        self.ctx.run()
        self.assertTrue(self.rec.value)
        self.assertEqual(self.http.requests[0].data, b"function cleanup() {}")

    def test_delete_scheduler(self):
        self.http.route("DELETE", service_path("scheduler", "jobs", "cleanup"), response(200))
        scripts.delete_script(self.ctx, "svc", scripts.ScriptName("scheduler", "cleanup"),
                              self.rec)
        self.ctx.run()
        self.assertEqual(self.requests(), [("DELETE", service_path("scheduler", "jobs",
                                                                   "cleanup"))])

    def test_get_table(self):
        self.http.route("GET", service_path("tables", "items", "scripts", "read", "code"),
                        response(200, "function read() {}", content_type="text/plain"))
        scripts.get_script(self.ctx, "svc", scripts.ScriptName("table", "items", "read"),
                           self.rec)
        self.ctx.run()
        self.assertEqual(self.rec.value, "function read() {}")

    def test_table_scripts(self):
        self.http.route("GET", service_path("tables"), response(200, [{"name": "items"},
                                                                     {"name": "orders"}]))
        self.http.route("GET", service_path("tables", "items", "scripts"),
                        response(200, [{"operation": "insert", "sizeBytes": 10}]))
        self.http.route("GET", service_path("tables", "orders", "scripts"), response(200, []))
        scripts.get_all_table_scripts(self.ctx, "svc", self.rec)
        self.ctx.run()
        self.assertEqual(self.rec.value, [{"operation": "insert", "sizeBytes": 10,
                                           "table": "items"}])

    def test_table_scripts_none(self):
        self.http.route("GET", service_path("tables"), response(200, []))
        scripts.get_all_table_scripts(self.ctx, "svc", self.rec)
        self.ctx.run()
        self.assertEqual(self.rec.value, [])

    def test_list(self):
        self.http.route("GET", service_path("tables"), response(200, [{"name": "items"},
                                                                     {"name": "orders"}]))
        self.http.route("GET", service_path("tables", "items", "scripts"), response(200, []))
        self.http.route("GET", service_path("apns", "scripts", "feedback"),
                        response(200, "abc", content_type="text/plain"))
        self.http.route("GET", service_path("scheduler", "jobs"),
                        response(200, [{"name": "cleanup"}]))
        scripts.list_scripts(self.ctx, "svc", self.rec)
        self.ctx.run()
        gathered = self.rec.value
        self.assertEqual(gathered.results, {"shared": [{"name": "apnsFeedback", "sizeBytes": 3}],
                                            "scheduler": [{"name": "cleanup"}]})
        self.assertIsInstance(gathered.errors["table"], ApplicationError)


class TestJobs(TasksTestCase):

    def test_definition_on_demand(self):
        self.assertEqual(jobs.job_definition("cleanup", unit="none"), {"name": "cleanup"})

    def test_definition(self):
        self.assertEqual(jobs.job_definition("cleanup", "5", "hour", "2013-01-01T00:00:00.000Z"),
                         {"name": "cleanup", "intervalUnit": "hour", "intervalPeriod": 5,
                          "startTime": "2013-01-01T00:00:00.000Z"})

    def test_definition_start_now(self):
        definition = jobs.job_definition("cleanup")
        self.assertEqual((definition["intervalUnit"], definition["intervalPeriod"]),
                         ("minute", 15))
        self.assertRegex(definition["startTime"],
                         re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$"))

    def test_definition_invalid(self):
        with self.assertRaises(ValidationError):
            jobs.job_definition("cleanup", unit="week")
        with self.assertRaises(ValidationError):
            jobs.job_definition("cleanup", interval="-1")

    def test_create(self):
        self.http.route("POST", service_path("scheduler", "jobs"), response(201))
        jobs.create_job(self.ctx, "svc", "cleanup", unit="none", callback=self.rec)
        self.ctx.run()
        self.assertEqual(self.rec.value.state, State.created)
        self.assertEqual(self.http.requests[0].json, {"name": "cleanup"})

    def job(self):
        path = service_path("scheduler", "jobs", "cleanup")
        self.http.route("GET", path, response(200, {"name": "cleanup", "intervalPeriod": 15,
                                                    "intervalUnit": "minute",
                                                    "startTime": "2013-01-01T00:00:00.000Z",
                                                    "status": "enabled"}))
        self.http.route("PUT", path, response(200))
        return path

    def test_update(self):
        path = self.job()
        jobs.update_job(self.ctx, "svc", "cleanup", interval="30", callback=self.rec)
        self.ctx.run()
        self.assertTrue(self.rec.value)
        self.assertEqual(self.requests(), [("GET", path), ("PUT", path)])
        self.assertEqual(self.http.requests[1].json, {"intervalPeriod": 30,
                                                      "intervalUnit": "minute",
                                                      "startTime": "2013-01-01T00:00:00.000Z",
                                                      "status": "enabled"})

    def test_update_unchanged(self):
        path = self.job()
        jobs.update_job(self.ctx, "svc", "cleanup", status="enabled", callback=self.rec)
        self.ctx.run()
        self.assertFalse(self.rec.value)
        self.assertEqual(self.requests(), [("GET", path)])

    def test_update_invalid(self):
        jobs.update_job(self.ctx, "svc", "cleanup", status="paused", callback=self.rec)
        self.assertIsInstance(self.rec.error, ValidationError)


if __name__ == "__main__":
    unittest.main()
