from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np

from ..tensor import as_raw_output
from ..types import RawOutput

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class OnnxRuntimeBackendConfig:
    """
    - providers: ORT execution providers in priority order; None lets ORT decide
    - input_name/output_name: override auto-selected I/O names
    - intra_op_threads/inter_op_threads: 0 keeps the ORT default
    """

    providers: Optional[Sequence[str]] = None
    input_name: Optional[str] = None
    output_name: Optional[str] = None
    intra_op_threads: int = 4
    inter_op_threads: int = 4

    def __post_init__(self) -> None:
        if self.intra_op_threads < 0 or self.inter_op_threads < 0:
            raise ValueError("thread counts must be >= 0")


class OnnxRuntimeBackend:
    """
    ONNX Runtime session for a single-output detector.

    Expects an NCHW float32 blob shaped (1, 3, S, S) and returns the primary
    output as a RawOutput (flat buffer + shape) ready for the decoder.
    """

    def __init__(self, model_path: PathLike, cfg: OnnxRuntimeBackendConfig = OnnxRuntimeBackendConfig()):
        try:
            import onnxruntime as ort  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "onnxruntime is required for the ONNX backend. Install it with `pip install onnxruntime`."
            ) from e

        self._ort = ort
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        sess_opts = ort.SessionOptions()
        sess_opts.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL
        if cfg.intra_op_threads:
            sess_opts.intra_op_num_threads = cfg.intra_op_threads
        if cfg.inter_op_threads:
            sess_opts.inter_op_num_threads = cfg.inter_op_threads
        providers = list(cfg.providers) if cfg.providers is not None else None
        self.session = ort.InferenceSession(str(self.model_path), sess_options=sess_opts, providers=providers)

        self.input_name = cfg.input_name or self.session.get_inputs()[0].name
        self.output_name = cfg.output_name or self.session.get_outputs()[0].name
        logger.debug("ORT session %s: input=%s output=%s", self.model_path.name, self.input_name, self.output_name)

    @property
    def providers_in_use(self) -> Sequence[str]:
        return tuple(self.session.get_providers())

    def infer(self, blob: np.ndarray) -> RawOutput:
        outputs = self.session.run([self.output_name], {self.input_name: blob})
        return as_raw_output(outputs[0])
