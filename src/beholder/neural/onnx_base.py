"""Base class for ONNX Runtime inference with GPU/TensorRT support."""

import traceback
from pathlib import Path
from typing import List, Union

import numpy as np
import onnxruntime
from onnxruntime.capi import _pybind_state as C


class ONNXRuntimeError(Exception):
    """Exception raised when ONNX Runtime encounters an error."""
    pass


class ONNXInferenceBase:
    """Base class for ONNX inference with hardware acceleration."""

    def __init__(
        self,
        model_path: Union[str, Path],
        use_gpu: bool = False,
        use_tensorrt: bool = False,
        num_threads: int = -1,
    ):
        """Initialize ONNX Runtime session.

        Args:
            model_path: Path to ONNX model file
            use_gpu: Enable CUDA GPU acceleration
            use_tensorrt: Enable TensorRT acceleration (requires TensorRT)
            num_threads: Number of threads for CPU execution (-1 for auto)
        """
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(f"Model not found: {model_path}")
        if not self.model_path.is_file():
            raise FileExistsError(f"{model_path} must be a file")

        sess_opt = onnxruntime.SessionOptions()
        sess_opt.log_severity_level = 4
        if num_threads != -1:
            sess_opt.intra_op_num_threads = num_threads
        sess_opt.graph_optimization_level = onnxruntime.GraphOptimizationLevel.ORT_ENABLE_ALL

        # Setup providers (TensorRT > CUDA > CPU)
        providers = self._get_providers(use_gpu, use_tensorrt)

        try:
            self.session = onnxruntime.InferenceSession(
                str(self.model_path),
                sess_options=sess_opt,
                providers=providers
            )
        except Exception as e:
            raise ONNXRuntimeError(traceback.format_exc()) from e

        # Cache input/output names
        self.input_names = [node.name for node in self.session.get_inputs()]
        self.output_names = [node.name for node in self.session.get_outputs()]

    def _get_providers(self, use_gpu: bool, use_tensorrt: bool) -> List:
        """Get execution providers based on hardware availability.

        Priority: TensorRT > CUDA > CPU
        """
        available_providers = C.get_available_providers()
        providers = []

        if use_tensorrt and "TensorrtExecutionProvider" in available_providers:
            providers.append(('TensorrtExecutionProvider', {}))

        if use_gpu and "CUDAExecutionProvider" in available_providers:
            providers.append((
                'CUDAExecutionProvider',
                {"cudnn_conv_algo_search": "DEFAULT"}
            ))

        # CPU (always available as fallback)
        providers.append('CPUExecutionProvider')

        return providers

    def run(self, input_data: dict) -> List[np.ndarray]:
        """Run inference on input data.

        Args:
            input_data: Dictionary mapping input names to numpy arrays

        Returns:
            List of output arrays, in model output order
        """
        try:
            return self.session.run(self.output_names, input_feed=input_data)
        except Exception as e:
            raise ONNXRuntimeError(traceback.format_exc()) from e

    def get_input_feed(self, blob: np.ndarray) -> dict:
        if len(self.input_names) != 1:
            raise ONNXRuntimeError(
                f"expected a single-input model, got inputs {self.input_names}"
            )
        return {self.input_names[0]: blob}

    def forward(self, blob: np.ndarray) -> List[np.ndarray]:
        """Run a single NCHW blob through the model."""
        return self.run(self.get_input_feed(blob))
