import os
import shutil
import tempfile
import unittest
from unittest.mock import patch

from bindbuilder import downloader
from bindbuilder.errors import DownloadFailed, VcsOperationFailed, VcsToolMissing


def _git_calls(mock_run):
    return [call.args[0][1:] for call in mock_run.call_args_list]


class TestAcquireRepository(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmp)

    @patch('bindbuilder.downloader.run_shell_command')
    def test_fresh_clone_fetches_only_the_ref(self, mock_run):
        mock_run.return_value = ("", "", 0)

        acquired = downloader.acquire_repository("zlib", "https://github.com/madler/zlib.git", "v1.3.1", self.tmp)

        working_copy = os.path.join(self.tmp, "zlib")
        self.assertEqual(acquired.path, working_copy)
        self.assertTrue(acquired.fresh_clone)
        self.assertEqual(os.fspath(acquired), working_copy)
        self.assertEqual(_git_calls(mock_run), [
            ["init"],
            ["remote", "add", "origin", "https://github.com/madler/zlib.git"],
            ["fetch", "origin", "v1.3.1"],
            ["reset", "--hard", "FETCH_HEAD"],
            ["submodule", "update", "--init", "--recursive"],
        ])
        for call in mock_run.call_args_list:
            self.assertEqual(call.kwargs["cwd"], working_copy)

    @patch('bindbuilder.downloader.run_shell_command')
    def test_existing_copy_is_fetched_and_reset(self, mock_run):
        mock_run.return_value = ("", "", 0)
        os.makedirs(os.path.join(self.tmp, "zlib"))

        acquired = downloader.acquire_repository("zlib", "https://example.com/zlib.git", "develop", self.tmp)

        self.assertFalse(acquired.fresh_clone)
        self.assertEqual(_git_calls(mock_run), [
            ["fetch", "origin", "develop"],
            ["reset", "--hard", "FETCH_HEAD"],
            ["submodule", "update", "--init", "--recursive"],
        ])

    @patch('bindbuilder.downloader.run_shell_command')
    def test_shallow_fetch(self, mock_run):
        mock_run.return_value = ("", "", 0)
        downloader.acquire_repository("zlib", "https://example.com/zlib.git", "v1", self.tmp, shallow=True)
        self.assertIn(["fetch", "--depth", "1", "origin", "v1"], _git_calls(mock_run))

    @patch('bindbuilder.downloader.run_shell_command')
    def test_git_tool_comes_from_argument(self, mock_run):
        mock_run.return_value = ("", "", 0)
        downloader.acquire_repository("zlib", "u", "v1", self.tmp, git="/opt/git/bin/git")
        self.assertTrue(all(call.args[0][0] == "/opt/git/bin/git" for call in mock_run.call_args_list))

    @patch('bindbuilder.downloader.run_shell_command')
    def test_missing_git(self, mock_run):
        mock_run.side_effect = FileNotFoundError("git")
        with self.assertRaises(VcsToolMissing):
            downloader.acquire_repository("zlib", "u", "v1", self.tmp)
        self.assertFalse(os.path.exists(os.path.join(self.tmp, "zlib")))

    @patch('bindbuilder.downloader.run_shell_command')
    def test_failed_fetch_carries_output_and_removes_partial_clone(self, mock_run):
        def fake_git(command, **kwargs):
            if command[1] == "fetch":
                return "", "fatal: couldn't find remote ref v9", 128
            return "", "", 0
        mock_run.side_effect = fake_git

        with self.assertRaises(VcsOperationFailed) as cm:
            downloader.acquire_repository("zlib", "u", "v9", self.tmp)

        self.assertIn("couldn't find remote ref v9", str(cm.exception))
        self.assertFalse(os.path.exists(os.path.join(self.tmp, "zlib")))

    @patch('bindbuilder.downloader.run_shell_command')
    def test_failed_update_keeps_existing_copy(self, mock_run):
        mock_run.return_value = ("", "error: Your local changes would be overwritten", 1)
        os.makedirs(os.path.join(self.tmp, "zlib"))
        with self.assertRaises(VcsOperationFailed):
            downloader.acquire_repository("zlib", "u", "v1", self.tmp)
        self.assertTrue(os.path.isdir(os.path.join(self.tmp, "zlib")))


class TestCloneRepository(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmp)

    @patch('bindbuilder.downloader.run_shell_command')
    def test_clone_command(self, mock_run):
        mock_run.return_value = ("", "", 0)
        acquired = downloader.clone_repository("zlib", "https://example.com/zlib.git", "v1.3.1", self.tmp)

        self.assertTrue(acquired.fresh_clone)
        mock_run.assert_called_once()
        self.assertEqual(mock_run.call_args.args[0], [
            "git", "clone", "https://example.com/zlib.git", "--depth", "1",
            "--branch", "v1.3.1", "--recurse", "zlib",
        ])
        self.assertEqual(mock_run.call_args.kwargs["cwd"], os.path.abspath(self.tmp))

    @patch('bindbuilder.downloader.run_shell_command')
    def test_existing_clone_is_reused(self, mock_run):
        os.makedirs(os.path.join(self.tmp, "zlib"))
        acquired = downloader.clone_repository("zlib", "u", "v1", self.tmp)
        self.assertFalse(acquired.fresh_clone)
        mock_run.assert_not_called()


class TestDownloadArchiveSource(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmp)

    @patch('bindbuilder.downloader.download_and_extract')
    def test_download_uses_single_top_level_directory(self, mock_download_and_extract):
        def fake_download(url, dest_dir, filename, verbose=False):
            os.makedirs(os.path.join(dest_dir, "zlib-1.3.1"))
            return dest_dir
        mock_download_and_extract.side_effect = fake_download

        acquired = downloader.download_archive_source("zlib", "https://example.com/zlib-1.3.1.tar.gz", self.tmp)

        extract_dir = os.path.join(self.tmp, "zlib")
        mock_download_and_extract.assert_called_once_with(
            "https://example.com/zlib-1.3.1.tar.gz", extract_dir + ".partial", "zlib-1.3.1.tar.gz", verbose=False
        )
        self.assertFalse(os.path.exists(extract_dir + ".partial"))
        self.assertEqual(acquired.path, os.path.join(extract_dir, "zlib-1.3.1"))
        self.assertTrue(acquired.fresh_clone)

    @patch('bindbuilder.downloader.download_and_extract')
    def test_existing_extraction_is_reused(self, mock_download_and_extract):
        os.makedirs(os.path.join(self.tmp, "zlib", "zlib-1.3.1"))
        acquired = downloader.download_archive_source("zlib", "https://example.com/zlib.tar.gz", self.tmp)
        mock_download_and_extract.assert_not_called()
        self.assertFalse(acquired.fresh_clone)

    @patch('bindbuilder.downloader.download_and_extract')
    def test_failed_download_cleans_up(self, mock_download_and_extract):
        def failing_download(url, dest_dir, filename, verbose=False):
            os.makedirs(dest_dir, exist_ok=True)
            raise DownloadFailed("404 Not Found")
        mock_download_and_extract.side_effect = failing_download

        with self.assertRaises(DownloadFailed):
            downloader.download_archive_source("zlib", "https://example.com/zlib.tar.gz", self.tmp)
        self.assertEqual(os.listdir(self.tmp), [])

    @patch('bindbuilder.downloader.download_and_extract')
    def test_interrupted_download_is_not_reused(self, mock_download_and_extract):
        def interrupted_download(url, dest_dir, filename, verbose=False):
            os.makedirs(dest_dir, exist_ok=True)
            with open(os.path.join(dest_dir, filename + ".tmp"), "wb") as f:
                f.write(b"abc")
            raise KeyboardInterrupt

        def fake_download(url, dest_dir, filename, verbose=False):
            os.makedirs(os.path.join(dest_dir, "zlib-1.3"))
            return dest_dir

        url = "https://example.com/zlib-1.3.tar.gz"
        mock_download_and_extract.side_effect = interrupted_download
        with self.assertRaises(KeyboardInterrupt):
            downloader.download_archive_source("zlib", url, self.tmp)
        self.assertEqual(os.listdir(self.tmp), [])

        mock_download_and_extract.side_effect = fake_download
        acquired = downloader.download_archive_source("zlib", url, self.tmp)

        self.assertTrue(acquired.fresh_clone)
        self.assertEqual(acquired.path, os.path.join(self.tmp, "zlib", "zlib-1.3"))
        self.assertEqual(mock_download_and_extract.call_count, 2)

    @patch('bindbuilder.downloader.download_and_extract')
    def test_empty_leftover_directory_is_replaced(self, mock_download_and_extract):
        def fake_download(url, dest_dir, filename, verbose=False):
            os.makedirs(os.path.join(dest_dir, "zlib-1.3"))
            return dest_dir
        mock_download_and_extract.side_effect = fake_download
        os.makedirs(os.path.join(self.tmp, "zlib"))

        acquired = downloader.download_archive_source("zlib", "https://example.com/zlib-1.3.tar.gz", self.tmp)
        self.assertEqual(acquired.path, os.path.join(self.tmp, "zlib", "zlib-1.3"))


if __name__ == '__main__':
    unittest.main()
