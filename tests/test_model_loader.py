import tempfile
import unittest
from unittest.mock import MagicMock, patch

from semantic_notes.core.errors import InitializationError
from semantic_notes.infrastructure.embedding import model_loader
from semantic_notes.infrastructure.embedding.model_loader import (
    ModelLoader,
    file_progress_class,
    select_device,
)

MODULE = "semantic_notes.infrastructure.embedding.model_loader"


def sibling(name, size):
    s = MagicMock()
    s.rfilename = name
    s.size = size
    return s


class TestSelectDevice(unittest.TestCase):
    def test_forced_device_wins(self):
        self.assertEqual(select_device("cpu"), "cpu")

    @patch(f"{MODULE}.torch")
    def test_prefers_cuda(self, mock_torch):
        mock_torch.cuda.is_available.return_value = True
        self.assertEqual(select_device(), "cuda")

    @patch(f"{MODULE}.torch")
    def test_then_mps(self, mock_torch):
        mock_torch.cuda.is_available.return_value = False
        mock_torch.backends.mps.is_available.return_value = True
        self.assertEqual(select_device(), "mps")

    @patch(f"{MODULE}.torch")
    def test_cpu_fallback(self, mock_torch):
        mock_torch.cuda.is_available.return_value = False
        mock_torch.backends.mps.is_available.return_value = False
        self.assertEqual(select_device(), "cpu")


class TestModelLoaderLoad(unittest.TestCase):
    def setUp(self):
        self.model = MagicMock()
        self.model.get_sentence_embedding_dimension.return_value = 768
        fetch = patch.object(ModelLoader, "fetch", return_value=[])
        fetch.start()
        self.addCleanup(fetch.stop)

    @patch(f"{MODULE}.SentenceTransformer")
    def test_loads_once(self, mock_st):
        mock_st.return_value = self.model
        loader = ModelLoader("some/model", device="cpu")

        self.assertIs(loader.load(), self.model)
        self.assertIs(loader.load(), self.model)
        mock_st.assert_called_once()
        _, kwargs = mock_st.call_args
        self.assertEqual(kwargs["device"], "cpu")
        self.assertIs(kwargs["model_kwargs"]["torch_dtype"], model_loader.torch.float32)

    @patch(f"{MODULE}.SentenceTransformer")
    def test_gpu_failure_falls_back_to_cpu(self, mock_st):
        mock_st.side_effect = [RuntimeError("CUDA error"), self.model]
        loader = ModelLoader("some/model", device="cuda")

        with self.assertLogs(MODULE, level="WARNING"):
            self.assertIs(loader.load(), self.model)

        devices = [call.kwargs["device"] for call in mock_st.call_args_list]
        self.assertEqual(devices, ["cuda", "cpu"])

    @patch(f"{MODULE}.SentenceTransformer")
    def test_cpu_failure_raises(self, mock_st):
        mock_st.side_effect = OSError("no such model")
        loader = ModelLoader("missing/model", device="cpu")

        with self.assertRaises(InitializationError) as ctx:
            loader.load()
        self.assertIn("missing/model", str(ctx.exception))

    @patch(f"{MODULE}.SentenceTransformer")
    def test_dimension_mismatch(self, mock_st):
        self.model.get_sentence_embedding_dimension.return_value = 384
        mock_st.return_value = self.model

        with self.assertRaises(InitializationError):
            ModelLoader("small/model", device="cpu").load()


class TestFileProgress(unittest.TestCase):
    def make_bar_class(self, total=1000):
        self.events = []
        return file_progress_class("model.safetensors", total, self.events.append)

    def test_chunk_updates_report_ascending_progress(self):
        bar = self.make_bar_class()(total=1000, initial=0, desc="model.safetensors", unit="B", unit_scale=True)
        for _ in range(4):
            bar.update(250)
        bar.close()

        self.assertEqual([e.percent for e in self.events], [25.0, 50.0, 75.0, 100.0])
        self.assertEqual([e.bytes_loaded for e in self.events], [250, 500, 750, 1000])
        self.assertTrue(all(e.file == "model.safetensors" and e.bytes_total == 1000 for e in self.events))

    def test_second_bar_never_moves_progress_backwards(self):
        bar_class = self.make_bar_class()
        file_bar = bar_class(total=1000, desc="model.safetensors: reconstructing file")
        network_bar = bar_class(total=1000, desc="model.safetensors: downloading bytes")

        file_bar.update(600)
        network_bar.update(300)
        file_bar.update(400)

        self.assertEqual([e.bytes_loaded for e in self.events], [600, 1000])

    def test_resumed_download_starts_from_initial(self):
        bar = self.make_bar_class()(total=1000, initial=400)
        bar.update(100)

        self.assertEqual([(e.percent, e.bytes_loaded) for e in self.events], [(50.0, 500)])

    def test_unknown_size_reports_zero_percent(self):
        bar = self.make_bar_class(total=0)(total=None)
        bar.update(10)

        self.assertEqual([(e.percent, e.bytes_loaded, e.bytes_total) for e in self.events], [(0.0, 10, 0)])


class TestModelLoaderFetch(unittest.TestCase):
    @patch(f"{MODULE}.hf_hub_download")
    @patch(f"{MODULE}.HfApi")
    def test_progress_events_per_file(self, mock_api, mock_download):
        info = MagicMock()
        info.sha = "abc123"
        info.siblings = [
            sibling("config.json", 100),
            sibling("onnx/model.onnx", 5000),
            sibling("model.safetensors", 2000),
        ]
        mock_api.return_value.model_info.return_value = info
        events = []

        loader = ModelLoader("some/model", progress_callback=events.append)
        fetched = loader.fetch()

        self.assertEqual(fetched, ["config.json", "model.safetensors"])
        self.assertEqual(
            [(e.file, e.percent, e.bytes_loaded, e.bytes_total) for e in events],
            [
                ("config.json", 0.0, 0, 100),
                ("config.json", 100.0, 100, 100),
                ("model.safetensors", 0.0, 0, 2000),
                ("model.safetensors", 100.0, 2000, 2000),
            ],
        )
        args, kwargs = mock_download.call_args
        self.assertEqual(args, ("some/model",))
        self.assertEqual(kwargs["filename"], "model.safetensors")
        self.assertEqual(kwargs["revision"], "abc123")
        self.assertTrue(issubclass(kwargs["tqdm_class"], model_loader.tqdm))

    @patch(f"{MODULE}.hf_hub_download")
    @patch(f"{MODULE}.HfApi")
    def test_download_reports_byte_progress(self, mock_api, mock_download):
        info = MagicMock()
        info.siblings = [sibling("model.safetensors", 1000)]
        mock_api.return_value.model_info.return_value = info

        def download(repo_id, filename, revision, tqdm_class):
            bar = tqdm_class(total=1000, initial=0, desc=filename, unit="B", unit_scale=True)
            for _ in range(4):
                bar.update(250)
            bar.close()

        mock_download.side_effect = download
        events = []

        ModelLoader("some/model", progress_callback=events.append).fetch()

        self.assertEqual([e.percent for e in events], [0.0, 25.0, 50.0, 75.0, 100.0])

    @patch(f"{MODULE}.hf_hub_download")
    @patch(f"{MODULE}.HfApi")
    def test_download_failure(self, mock_api, mock_download):
        info = MagicMock()
        info.siblings = [sibling("model.safetensors", 10)]
        mock_api.return_value.model_info.return_value = info
        mock_download.side_effect = OSError("disk full")
        events = []

        with self.assertRaises(InitializationError):
            ModelLoader("some/model", progress_callback=events.append).fetch()
        self.assertEqual([e.percent for e in events], [0.0])

    @patch(f"{MODULE}.hf_hub_download")
    @patch(f"{MODULE}.HfApi")
    def test_offline_uses_cache(self, mock_api, mock_download):
        mock_api.return_value.model_info.side_effect = ConnectionError("offline")
        events = []

        with self.assertLogs(MODULE, level="WARNING"):
            fetched = ModelLoader("some/model", progress_callback=events.append).fetch()

        self.assertEqual(fetched, [])
        self.assertEqual(events, [])
        mock_download.assert_not_called()

    @patch(f"{MODULE}.HfApi")
    def test_local_directory_skips_hub(self, mock_api):
        with tempfile.TemporaryDirectory() as model_dir:
            self.assertEqual(ModelLoader(model_dir).fetch(), [])
        mock_api.assert_not_called()


if __name__ == '__main__':
    unittest.main()
