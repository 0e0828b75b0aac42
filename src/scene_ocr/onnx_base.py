"""ONNX Runtime inference session with GPU/TensorRT support."""

import logging
import traceback
from pathlib import Path
from typing import List, Optional, Union

import numpy as np
import onnxruntime
from onnxruntime import GraphOptimizationLevel, SessionOptions
from onnxruntime.capi import _pybind_state as C

from .errors import InferenceError, ModelLoadError

logger = logging.getLogger(__name__)


def resolve_model_path(model_path: Union[str, Path]) -> Path:
    """Resolve a model path prefix to an ``.onnx`` file on disk.

    Args:
        model_path: Either the model file itself or its path without extension

    Returns:
        Path to an existing model file

    Raises:
        ModelLoadError: If neither candidate exists
    """
    if not str(model_path):
        raise ModelLoadError("Empty model path")

    path = Path(model_path)
    if path.is_file():
        return path

    with_suffix = path.with_name(path.name + ".onnx")
    if with_suffix.is_file():
        return with_suffix

    raise ModelLoadError(f"Model not found: {model_path}")


class OnnxSession:
    """Read-only model handle shared by every worker of a stage.

    ``InferenceSession.run`` keeps no per-call state on the session, so a
    single instance can be called from several threads at once.
    """

    def __init__(
        self,
        model_path: Union[str, Path],
        num_threads: int = 1,
        use_gpu: bool = False,
        use_tensorrt: bool = False,
        fp16: bool = False,
    ):
        """Initialize ONNX Runtime session.

        Args:
            model_path: Path (or path prefix) of the ONNX model
            num_threads: Intra-op threads for CPU execution (-1 for auto)
            use_gpu: Enable CUDA GPU acceleration
            use_tensorrt: Enable TensorRT acceleration (requires TensorRT)
            fp16: Let TensorRT run in half precision

        Raises:
            ModelLoadError: If the model is missing or cannot be parsed
        """
        self.model_path = resolve_model_path(model_path)
        self.num_threads = num_threads

        sess_opt = SessionOptions()
        sess_opt.log_severity_level = 4
        sess_opt.enable_cpu_mem_arena = False
        if num_threads != -1:
            sess_opt.intra_op_num_threads = num_threads
        sess_opt.graph_optimization_level = GraphOptimizationLevel.ORT_ENABLE_ALL

        providers = self._get_providers(use_gpu, use_tensorrt, fp16)

        try:
            self.session = onnxruntime.InferenceSession(
                str(self.model_path),
                sess_options=sess_opt,
                providers=providers,
            )
        except Exception as e:
            raise ModelLoadError(f"Failed to load model {self.model_path}: {e}") from e

        # Cache input/output names
        self.input_names = [node.name for node in self.session.get_inputs()]
        self.output_names = [node.name for node in self.session.get_outputs()]

        logger.debug(
            "Loaded %s (inputs=%s, outputs=%s, threads=%d)",
            self.model_path, self.input_names, self.output_names, num_threads,
        )

    @staticmethod
    def _get_providers(use_gpu: bool, use_tensorrt: bool, fp16: bool) -> List:
        """Get execution providers based on hardware availability.

        Priority: TensorRT > CUDA > CPU
        """
        available_providers = C.get_available_providers()
        providers = []

        if use_tensorrt and "TensorrtExecutionProvider" in available_providers:
            providers.append(("TensorrtExecutionProvider", {"trt_fp16_enable": fp16}))

        if use_gpu and "CUDAExecutionProvider" in available_providers:
            providers.append((
                "CUDAExecutionProvider",
                {"cudnn_conv_algo_search": "DEFAULT"}
            ))

        # CPU (always available as fallback)
        providers.append(("CPUExecutionProvider", {"arena_extend_strategy": "kSameAsRequested"}))

        return providers

    def infer(
        self,
        tensor: np.ndarray,
        input_name: Optional[str] = None,
        output_name: Optional[str] = None,
    ) -> np.ndarray:
        """Run a forward pass and return a single output tensor.

        Args:
            tensor: Input tensor (N, C, H, W)
            input_name: Graph input to feed (defaults to the first input)
            output_name: Graph output to fetch (defaults to the first output)

        Returns:
            Output tensor

        Raises:
            InferenceError: If ONNX Runtime fails
        """
        input_name = input_name or self.input_names[0]
        output_name = output_name or self.output_names[0]
        try:
            return self.session.run([output_name], {input_name: tensor})[0]
        except Exception as e:
            raise InferenceError(traceback.format_exc()) from e

    def __repr__(self):
        return f"OnnxSession(model={self.model_path.name}, threads={self.num_threads})"
