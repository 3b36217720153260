import os
import unittest
from unittest.mock import patch

import toml
from click.testing import CliRunner

from bindbuilder.main import cli

LINUX = "x86_64-unknown-linux-gnu"

# Keep the caller's shell from leaking into the build environment.
ENV = {
    "TARGET": LINUX,
    "HOST": LINUX,
    "PROFILE": None,
    "OUT_DIR": None,
    "BINDBUILDER_TARGET_DIR": None,
    "CMAKE": None,
    "GIT": None,
}

ZLIB_PROJECT = {
    "project": {"name": "bindings"},
    "build": {"profile": "Release"},
    "dependency": [{
        "name": "zlib",
        "git": "https://github.com/madler/zlib.git",
        "ref": "v1.3.1",
        "link_targets": ["z"],
    }],
}


def fake_git(command, cwd=None, **kwargs):
    """A fetch that leaves a CMake project behind."""
    if command[1] == "reset":
        with open(os.path.join(cwd, "CMakeLists.txt"), "w") as f:
            f.write("project(zlib C)\n")
    return "", "", 0


def fake_cmake(command, cwd=None, **kwargs):
    """An install that produces zlib's header and static archive."""
    if "--install" in command:
        prefix = command[command.index("--prefix") + 1]
        os.makedirs(os.path.join(prefix, "include"), exist_ok=True)
        os.makedirs(os.path.join(prefix, "lib"), exist_ok=True)
        for relative in ("include/zlib.h", "lib/libz.a"):
            with open(os.path.join(prefix, relative), "w") as f:
                f.write("")
    return "ok", "", 0


class TestBuildCommand(unittest.TestCase):

    def setUp(self):
        self.runner = CliRunner(env=ENV)

    def _write_project(self, conf):
        with open("bindbuilder.toml", "w") as f:
            toml.dump(conf, f)

    @patch('bindbuilder.builder.run_shell_command')
    @patch('bindbuilder.downloader.run_shell_command')
    def test_zlib_from_git(self, mock_git, mock_cmake):
        mock_git.side_effect = fake_git
        mock_cmake.side_effect = fake_cmake

        with self.runner.isolated_filesystem():
            self._write_project(ZLIB_PROJECT)
            project = os.path.realpath(os.getcwd())

            result = self.runner.invoke(cli, ["build"])

            self.assertEqual(result.exit_code, 0, result.output)
            source = os.path.join(project, "target", "bindbuilder-src", "zlib")
            install = os.path.join(source, "bindbuilder-Release", "install")
            lines = result.output.splitlines()
            self.assertIn(f"bindbuilder:include={install}/include", lines)
            self.assertIn(f"bindbuilder:link-search=native={install}/lib", lines)
            self.assertIn("bindbuilder:link-lib=static=z", lines)
            self.assertTrue(os.path.isfile(os.path.join(install, "lib", "libz.a")))

            git_commands = [call.args[0][1] for call in mock_git.call_args_list]
            self.assertEqual(git_commands, ["init", "remote", "fetch", "reset", "submodule"])

    @patch('bindbuilder.builder.run_shell_command')
    def test_directives_to_file_and_profile_override(self, mock_cmake):
        mock_cmake.side_effect = fake_cmake

        with self.runner.isolated_filesystem():
            os.makedirs(os.path.join("vendor", "zlib"))
            with open(os.path.join("vendor", "zlib", "CMakeLists.txt"), "w") as f:
                f.write("project(zlib C)\n")
            self._write_project({
                "project": {"name": "bindings"},
                "dependency": [{"name": "zlib", "path": "vendor/zlib", "link_targets": ["z"]}],
            })

            result = self.runner.invoke(cli, ["build", "--profile", "debug", "-o", "link.txt"])

            self.assertEqual(result.exit_code, 0, result.output)
            with open("link.txt") as f:
                self.assertIn("bindbuilder:link-lib=static=z", f.read().splitlines())
            self.assertTrue(os.path.isdir(os.path.join("vendor", "zlib", "bindbuilder-Debug", "install")))

    @patch('bindbuilder.builder.run_shell_command')
    def test_build_failure_exits_nonzero(self, mock_cmake):
        mock_cmake.return_value = ("", "CMake Error at CMakeLists.txt:1", 1)

        with self.runner.isolated_filesystem():
            os.makedirs("lib")
            with open(os.path.join("lib", "CMakeLists.txt"), "w") as f:
                f.write("broken(\n")
            self._write_project({"project": {"name": "p"}, "dependency": [{"name": "lib", "path": "lib"}]})

            result = self.runner.invoke(cli, ["build"])

            self.assertEqual(result.exit_code, 1)
            self.assertIn("CMake Error at CMakeLists.txt:1", result.output)

    def test_missing_project_file(self):
        with self.runner.isolated_filesystem():
            result = self.runner.invoke(cli, ["build"])
            self.assertEqual(result.exit_code, 1)
            self.assertIn("bindbuilder init", result.output)

    def test_malformed_dependency(self):
        with self.runner.isolated_filesystem():
            self._write_project({"project": {"name": "p"}, "dependency": [{"name": "x"}]})
            result = self.runner.invoke(cli, ["build"])
            self.assertEqual(result.exit_code, 1)
            self.assertIn("exactly one of", result.output)

    def test_no_dependencies(self):
        with self.runner.isolated_filesystem():
            self._write_project({"project": {"name": "p"}})
            result = self.runner.invoke(cli, ["build"])
            self.assertEqual(result.exit_code, 0)
            self.assertIn("nothing to build", result.output)


class TestFetchCommand(unittest.TestCase):

    @patch('bindbuilder.downloader.run_shell_command')
    def test_fetch_reports_fresh_then_reused(self, mock_git):
        mock_git.side_effect = fake_git
        runner = CliRunner(env=ENV)

        with runner.isolated_filesystem():
            with open("bindbuilder.toml", "w") as f:
                toml.dump(ZLIB_PROJECT, f)

            first = runner.invoke(cli, ["fetch"])
            second = runner.invoke(cli, ["fetch", "zlib"])

            self.assertEqual(first.exit_code, 0, first.output)
            self.assertIn("fresh copy", first.output)
            self.assertEqual(second.exit_code, 0, second.output)
            self.assertIn("reused existing copy", second.output)


if __name__ == '__main__':
    unittest.main()
