from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence, Union

import numpy as np


PathLike = Union[str, Path]


@dataclass(frozen=True)
class OnnxRuntimeBackendConfig:
    """
    Configuration for ONNX Runtime inference.

    - providers: ORT execution providers (e.g., ["CUDAExecutionProvider", "CPUExecutionProvider"])
    - output_name: output to return from `infer`; defaults to the first graph output
    """

    providers: Optional[Sequence[str]] = None
    output_name: Optional[str] = None


class OnnxRuntimeBackend:
    """
    Minimal ONNX Runtime backend.

    Feeds named float32 tensors and returns one output as a NumPy array. Works
    for both the detector (`images`) and the NMS graph (`detection` + `config`).
    """

    def __init__(self, model_path: PathLike, cfg: OnnxRuntimeBackendConfig = OnnxRuntimeBackendConfig()):
        try:
            import onnxruntime as ort  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "onnxruntime is required for the ONNX backend. Install it with `pip install onnxruntime` "
                "(or `onnxruntime-gpu`)."
            ) from e

        self._ort = ort
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        sess_opts = ort.SessionOptions()
        providers = list(cfg.providers) if cfg.providers is not None else None
        self.session = ort.InferenceSession(str(self.model_path), sess_options=sess_opts, providers=providers)

        self.output_name = cfg.output_name or self.session.get_outputs()[0].name
        if self.output_name not in self.output_names:
            raise ValueError(f"Output name {self.output_name!r} not found. Available: {list(self.output_names)}")

    @property
    def input_names(self) -> Sequence[str]:
        return tuple(i.name for i in self.session.get_inputs())

    @property
    def output_names(self) -> Sequence[str]:
        return tuple(o.name for o in self.session.get_outputs())

    @property
    def providers_in_use(self) -> Sequence[str]:
        # ORT returns providers in priority order for this session.
        return tuple(self.session.get_providers())

    @property
    def available_providers(self) -> Sequence[str]:
        return tuple(self._ort.get_available_providers())

    def infer(self, feeds: Mapping[str, np.ndarray]) -> np.ndarray:
        missing = [name for name in self.input_names if name not in feeds]
        if missing:
            raise ValueError(f"Missing model inputs {missing} for {self.model_path.name}.")
        outputs = self.session.run([self.output_name], dict(feeds))
        return outputs[0]
