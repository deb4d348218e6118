from contextlib import contextmanager, redirect_stderr, redirect_stdout
from inspect import cleandoc
from io import StringIO
import unittest
from unittest import mock

from mobilelib.errors import ApplicationError
from mobilelib.plumbing.common import Password
from mobilelib.scripts.utils import confirm, ENTRYPOINTS, on_success, show

from .plumbing import FakeHTTP, make_context, response
from .scripts import fails, fails_later, list_, no_args, with_args, with_context, with_password


class TestEntrypoint(unittest.TestCase):

    def setUp(self):
        self.http = FakeHTTP()
        self.subscriptions = []

        @contextmanager
        def context(subscription=None):
            self.subscriptions.append(subscription)
            ctx = make_context(self.http)
            yield ctx
            ctx.run()

        patcher = mock.patch("mobilelib.scripts.utils.context", context)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_entrypoints(self):
        self.assertIn("mobile-scripts-no-args=tests.scripts:no_args", ENTRYPOINTS)

    def test_entrypoint_strip(self):
        self.assertIn("mobile-scripts-list=tests.scripts:list_", ENTRYPOINTS)

    def test_doc(self):
        self.assertEqual(cleandoc(no_args.__doc__), "Usage: mobile-scripts-no-args")

    def test_args(self):
        self.assertEqual(with_args({"SERVICE": "svc", "<table>": "items", "COLUMN": None}),
                         ("svc", "items", None))

    def test_args_argv(self):
        with mock.patch("sys.argv", ["mobile-scripts-with-args", "svc", "items", "id"]):
            self.assertEqual(with_args(), ("svc", "items", "id"))

    def test_global_options_removed(self):
        opts = list_({"--debug": False, "--subscription": "other"})
        self.assertEqual(opts, {})

    def test_password_given(self):
        password = with_password({"PASSWORD": "secret"})
        self.assertIsInstance(password, Password)
        self.assertEqual(str(password), "secret")

    def test_password_prompt(self):
        with mock.patch("mobilelib.scripts.utils.getpass", return_value="prompted"):
            password = with_password({"PASSWORD": None})
        self.assertEqual(str(password), "prompted")

    def test_context(self):
        self.http.route("GET", "/sub/svc", response(200, {"name": "svc"}))
        out = StringIO()
        with redirect_stdout(out):
            with_context({"SERVICE": "svc", "--subscription": "other"})
        self.assertEqual(out.getvalue(), "svc\n")
        self.assertEqual(self.subscriptions, ["other"])

    def test_error(self):
        err = StringIO()
        with redirect_stderr(err), self.assertRaises(SystemExit) as cm:
            fails({})
        self.assertEqual(cm.exception.code, 1)
        self.assertEqual(err.getvalue(), "Something went wrong\n")

    def test_error_in_callback(self):
        err = StringIO()
        with redirect_stderr(err), self.assertRaises(SystemExit) as cm:
            fails_later({})
        self.assertEqual(cm.exception.code, 1)
        self.assertEqual(err.getvalue(), "Something went wrong later\n")


class TestHelpers(unittest.TestCase):

    def test_on_success(self):
        values = []
        on_success(values.append)(None, 5)
        self.assertEqual(values, [5])

    def test_on_success_error(self):
        values = []
        with redirect_stderr(StringIO()), self.assertRaises(SystemExit):
            on_success(values.append)(ApplicationError(404, "Not found"), None)
        self.assertEqual(values, [])

    def test_confirm_quiet(self):
        with mock.patch("builtins.input") as prompt:
            confirm("Delete?", quiet=True)
        prompt.assert_not_called()

    def test_confirm_yes(self):
        with mock.patch("builtins.input", return_value="y"):
            confirm("Delete?")

    def test_confirm_no(self):
        with mock.patch("builtins.input", return_value=""), redirect_stderr(StringIO()), \
                self.assertRaises(SystemExit):
            confirm("Delete?")

    def test_show(self):
        out = StringIO()
        with redirect_stdout(out):
            show({"name": "svc", "tables": ["items", "orders"], "scale": {"instances": 1},
                  "empty": None})
        self.assertEqual(out.getvalue().splitlines(), ["name: svc",
                                                       "tables:",
                                                       "  - items",
                                                       "  - orders",
                                                       "scale:",
                                                       "  instances: 1",
                                                       "empty: "])


if __name__ == "__main__":
    unittest.main()
