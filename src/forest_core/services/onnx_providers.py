"""Direct ONNX Runtime provider for the local embedding model.

Implements EmbeddingProvider using onnxruntime directly, without
sentence-transformers. The model is fetched from the HuggingFace Hub on
first load and cached.

Default model: sentence-transformers/all-MiniLM-L6-v2 (22M params, 384-dim,
Apache-2.0), mean pooling over the attention mask.
"""

from __future__ import annotations

import logging
import resource
from pathlib import Path
from typing import List, Optional, Sequence

import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_LOCAL_MODEL = "sentence-transformers/all-MiniLM-L6-v2"
DEFAULT_LOCAL_DIMENSION = 384


def _get_rss_mb() -> float:
    """Return current RSS (Resident Set Size) in MB via /proc on Linux,
    falling back to resource.getrusage elsewhere."""
    try:
        with open("/proc/self/status") as f:
            for line in f:
                if line.startswith("VmRSS:"):
                    return int(line.split()[1]) / 1024  # kB → MB
    except (OSError, ValueError):
        pass
    # Fallback: ru_maxrss is in KB on Linux
    return resource.getrusage(resource.RUSAGE_SELF).ru_maxrss / 1024


# Lazy imports; these are optional dependencies
# These are populated by _ensure_imports()
_ort = None
_tokenizers = None
_hf_hub = None


def _ensure_imports() -> None:
    """Import optional dependencies, raising a clear error if missing."""
    global _ort, _tokenizers, _hf_hub
    if _ort is None:
        try:
            import onnxruntime as ort

            _ort = ort
        except ImportError:
            raise ImportError(
                "onnxruntime is required for local embeddings. "
                "Install with: pip install forest-core[semantic]"
            )
    if _tokenizers is None:
        try:
            import tokenizers as tok

            _tokenizers = tok
        except ImportError:
            raise ImportError(
                "tokenizers is required for local embeddings. "
                "Install with: pip install forest-core[semantic]"
            )
    if _hf_hub is None:
        try:
            import huggingface_hub as hfh

            _hf_hub = hfh
        except ImportError:
            raise ImportError(
                "huggingface-hub is required for local embeddings. "
                "Install with: pip install forest-core[semantic]"
            )


def _resolve_providers(preference: str = "auto") -> List[str]:
    """Resolve ONNX execution providers based on preference string.

    Args:
        preference: One of:
            - "auto": detect available providers (CUDA > CPU)
            - "cpu": force CPUExecutionProvider only
            - comma-separated list: use as-is (e.g. "CUDAExecutionProvider,CPUExecutionProvider")

    Returns:
        Ordered list of provider names for ort.InferenceSession.
    """
    _ensure_imports()

    pref = preference.strip().lower()
    if pref == "cpu":
        return ["CPUExecutionProvider"]

    if pref == "auto":
        available = _ort.get_available_providers()
        providers = []
        if "CUDAExecutionProvider" in available:
            providers.append("CUDAExecutionProvider")
        # Always include CPU as fallback
        providers.append("CPUExecutionProvider")
        return providers

    # Explicit comma-separated list
    return [p.strip() for p in preference.split(",") if p.strip()]


def _download_model_files(
    model_id: str,
    filenames: List[str],
    cache_dir: Optional[Path] = None,
) -> Path:
    """Download model files from HuggingFace Hub and return the snapshot directory."""
    _ensure_imports()
    snapshot_dir = _hf_hub.snapshot_download(
        repo_id=model_id,
        allow_patterns=filenames,
        cache_dir=str(cache_dir) if cache_dir else None,
    )
    return Path(snapshot_dir)


def l2_normalize(vectors: np.ndarray) -> np.ndarray:
    """Row-wise L2 normalization; zero rows stay zero."""
    norms = np.linalg.norm(vectors, axis=-1, keepdims=True)
    norms = np.maximum(norms, 1e-12)
    return vectors / norms


class OnnxEmbeddingProvider:
    """Embedding provider using direct ONNX Runtime inference.

    Loads a BERT-family sentence model from the HuggingFace Hub's /onnx/
    folder and produces unit-length vectors.

    Args:
        model_id: HuggingFace model ID.
        onnx_filename: Path to the ONNX model file within the repo.
        max_length: Maximum token length for truncation.
        cache_dir: Optional custom cache directory for model files.
        providers: Provider preference string ("auto", "cpu", or comma-separated).
        pooling: "mean" averages token states under the attention mask
            (sentence-transformers models); "cls" takes the first token.
        dimension: Expected vector length before the model is loaded.
    """

    def __init__(
        self,
        model_id: str = DEFAULT_LOCAL_MODEL,
        onnx_filename: str = "onnx/model.onnx",
        max_length: int = 256,
        cache_dir: Optional[Path] = None,
        providers: str = "auto",
        pooling: str = "mean",
        dimension: int = DEFAULT_LOCAL_DIMENSION,
    ) -> None:
        if pooling not in ("mean", "cls"):
            raise ValueError(f"pooling must be 'mean' or 'cls', got {pooling!r}")
        self._model_id = model_id
        self._onnx_filename = onnx_filename
        self._max_length = max_length
        self._cache_dir = cache_dir
        self._providers_pref = providers
        self._pooling = pooling
        self._session: Optional[object] = None  # ort.InferenceSession
        self._tokenizer: Optional[object] = None  # tokenizers.Tokenizer
        self._dim = dimension

    @property
    def dimension(self) -> int:
        return self._dim

    @property
    def model_id(self) -> str:
        return self._model_id

    def load(self) -> None:
        """Download and load the ONNX model and tokenizer."""
        if self._session is not None:
            return  # Already loaded

        _ensure_imports()
        rss_before = _get_rss_mb()
        logger.info(
            f"Loading embedding model: {self._model_id} "
            f"[{self._onnx_filename}] "
            f"(RSS before load: {rss_before:.0f}MB)"
        )

        model_dir = _download_model_files(
            self._model_id,
            [self._onnx_filename, "tokenizer.json", "tokenizer_config.json"],
            self._cache_dir,
        )

        tokenizer_path = model_dir / "tokenizer.json"
        tokenizer = _tokenizers.Tokenizer.from_file(str(tokenizer_path))
        tokenizer.enable_truncation(max_length=self._max_length)
        tokenizer.enable_padding(length=None)  # Dynamic padding per batch

        onnx_path = model_dir / self._onnx_filename
        if not onnx_path.exists():
            raise FileNotFoundError(
                f"ONNX model not found at {onnx_path}. "
                f"Check that {self._model_id} has an ONNX model at {self._onnx_filename}"
            )

        sess_options = _ort.SessionOptions()
        sess_options.graph_optimization_level = (
            _ort.GraphOptimizationLevel.ORT_ENABLE_ALL
        )
        providers = _resolve_providers(self._providers_pref)
        if providers == ["CPUExecutionProvider"]:
            # The CPU arena allocator never hands memory back between calls
            sess_options.enable_cpu_mem_arena = False

        session = _ort.InferenceSession(
            str(onnx_path),
            sess_options=sess_options,
            providers=providers,
        )

        # Detect actual dimension from model output shape
        outputs = session.get_outputs()
        if outputs and len(outputs[0].shape) >= 2 and isinstance(outputs[0].shape[-1], int):
            self._dim = outputs[0].shape[-1]

        self._tokenizer = tokenizer
        self._session = session

        rss_after = _get_rss_mb()
        logger.info(
            f"Embedding model loaded: dim={self._dim}, "
            f"max_tokens={self._max_length}, providers={session.get_providers()}, "
            f"RSS: {rss_after:.0f}MB (+{rss_after - rss_before:.0f}MB)"
        )

    def unload(self) -> None:
        """Release model from memory."""
        if self._session is None:
            return
        self._session = None
        self._tokenizer = None
        logger.info(f"Embedding model unloaded: {self._model_id}")

    @property
    def is_loaded(self) -> bool:
        return self._session is not None

    def _tokenize(self, texts: Sequence[str]) -> dict:
        """Tokenize texts and return numpy arrays for ONNX input."""
        encodings = self._tokenizer.encode_batch(list(texts))

        max_len = max(len(e.ids) for e in encodings)

        input_ids = np.zeros((len(texts), max_len), dtype=np.int64)
        attention_mask = np.zeros((len(texts), max_len), dtype=np.int64)

        for i, encoding in enumerate(encodings):
            length = len(encoding.ids)
            input_ids[i, :length] = encoding.ids
            attention_mask[i, :length] = encoding.attention_mask

        return {"input_ids": input_ids, "attention_mask": attention_mask}

    def _forward(self, inputs: dict) -> np.ndarray:
        """Run ONNX inference and apply pooling + L2 normalization."""
        input_names = {inp.name for inp in self._session.get_inputs()}
        feed = {}
        if "input_ids" in input_names:
            feed["input_ids"] = inputs["input_ids"]
        if "attention_mask" in input_names:
            feed["attention_mask"] = inputs["attention_mask"]
        if "token_type_ids" in input_names:
            # BERT models expect token_type_ids (all zeros for single-sequence)
            feed["token_type_ids"] = np.zeros_like(inputs["input_ids"])

        hidden_states = self._session.run(None, feed)[0]  # (batch, seq_len, hidden)

        if self._pooling == "cls":
            embeddings = hidden_states[:, 0, :]
        else:
            mask = inputs["attention_mask"][..., np.newaxis].astype(hidden_states.dtype)
            summed = (hidden_states * mask).sum(axis=1)
            counts = np.maximum(mask.sum(axis=1), 1e-9)
            embeddings = summed / counts

        return l2_normalize(embeddings)

    def embed(self, text: str) -> np.ndarray:
        """Embed a single text into a normalized dense vector."""
        if not self.is_loaded:
            self.load()

        inputs = self._tokenize([text])
        return self._forward(inputs)[0]
