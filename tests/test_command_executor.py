import sys
import unittest
from unittest.mock import patch, MagicMock

from bindbuilder.utils import combine_output, format_command, run_shell_command


class TestRunShellCommand(unittest.TestCase):

    @patch('subprocess.run')
    def test_captures_output(self, mock_run):
        mock_run.return_value = MagicMock(stdout="out", stderr="err", returncode=3)

        stdout, stderr, returncode = run_shell_command(["cmake", "--version"], cwd="/tmp/build")

        self.assertEqual((stdout, stderr, returncode), ("out", "err", 3))
        args, kwargs = mock_run.call_args
        self.assertEqual(args[0], ["cmake", "--version"])
        self.assertEqual(kwargs["cwd"], "/tmp/build")
        self.assertFalse(kwargs["check"])

    def test_missing_executable_raises_file_not_found(self):
        with self.assertRaises(FileNotFoundError):
            run_shell_command(["definitely-not-a-real-tool-bindbuilder"])

    def test_streams_merged_output(self):
        code = "import sys; print('one'); print('two', file=sys.stderr); sys.exit(2)"
        stdout, stderr, returncode = run_shell_command([sys.executable, "-c", code], stream_output=True)
        self.assertIn("one", stdout)
        self.assertIn("two", stdout)
        self.assertEqual(stderr, "")
        self.assertEqual(returncode, 2)

    def test_undecodable_output_is_replaced(self):
        code = "import sys; sys.stderr.buffer.write(b'caf\\xe9\\n'); sys.exit(1)"
        stdout, stderr, returncode = run_shell_command([sys.executable, "-c", code])
        self.assertEqual(stderr, "caf�\n")
        self.assertEqual(returncode, 1)

        stdout, stderr, returncode = run_shell_command([sys.executable, "-c", code], stream_output=True)
        self.assertEqual(stdout, "caf�\n")
        self.assertEqual(returncode, 1)

    def test_arguments_are_stringified(self):
        with patch('subprocess.run') as mock_run:
            mock_run.return_value = MagicMock(stdout="", stderr="", returncode=0)
            run_shell_command(["cmake", "--parallel", 4])
            self.assertEqual(mock_run.call_args[0][0], ["cmake", "--parallel", "4"])


def test_combine_output_skips_empty_streams():
    assert combine_output("", "boom\n") == "Stderr:\nboom"
    assert combine_output("built\n", "warn") == "Stdout:\nbuilt\nStderr:\nwarn"
    assert combine_output(None, "  ") == ""


def test_format_command_quotes_spaces():
    assert format_command(["cmake", "-G", "Unix Makefiles"]) == "cmake -G 'Unix Makefiles'"


if __name__ == '__main__':
    unittest.main()
