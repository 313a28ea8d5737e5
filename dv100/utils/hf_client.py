"""
HuggingFace Client - local model behind the Jura collaborator endpoints

Responsibilities:
- Load a causal LM (NF4 4-bit on CUDA, full precision on CPU)
- Turn a system/user message pair into one reply
- Surface CUDA out-of-memory instead of hiding it

Design principles:
- Dependency injection (services receive the client, no singleton)
- The client knows nothing about DV-100; prompts come from prompt_builder
- Chat formatting is delegated to PromptFormatter
"""

import logging
import time

import torch
from transformers import (
    AutoModelForCausalLM,
    AutoTokenizer,
    BitsAndBytesConfig
)

from dv100.utils.prompt_formatter import PromptFormatter

logger = logging.getLogger(__name__)


def resolve_device(requested=None):
    """
    Pick the inference device.

    Raises:
        RuntimeError: If CUDA is requested explicitly but unavailable
    """
    cuda_available = torch.cuda.is_available()
    if requested is None:
        return "cuda" if cuda_available else "cpu"
    if requested == "cuda" and not cuda_available:
        raise RuntimeError("CUDA requested but not available. Check nvidia-smi.")
    return requested


def quantization_for(device, load_in_4bit):
    """NF4 config for CUDA 4-bit loading, else None (bitsandbytes is CUDA only)"""
    if not (load_in_4bit and device == "cuda"):
        return None
    return BitsAndBytesConfig(
        load_in_4bit=True,
        bnb_4bit_quant_type="nf4",
        bnb_4bit_compute_dtype=torch.bfloat16,
        bnb_4bit_use_double_quant=True
    )


class HuggingFaceClient:
    """Single-turn chat over a locally loaded HuggingFace model"""

    def __init__(self, model_name, load_in_4bit=True, device=None):
        """
        Args:
            model_name (str): HuggingFace model identifier
            load_in_4bit (bool): Quantize to NF4 when running on CUDA
            device (str): "cuda", "cpu", or None to auto-detect

        Raises:
            RuntimeError: If CUDA requested but not available
            torch.cuda.OutOfMemoryError: If the weights don't fit
        """
        self.model_name = model_name
        self.device = resolve_device(device)
        self.tokenizer = None
        self.model = None

        started = time.time()
        self._load(load_in_4bit)
        self.formatter = PromptFormatter(model_name, self.tokenizer)

        logger.info(
            f"Model {model_name} ready on {self.device} "
            f"({time.time() - started:.1f}s, 4-bit={load_in_4bit and self.device == 'cuda'})"
        )

    def _load(self, load_in_4bit):
        on_cuda = self.device == "cuda"
        try:
            self.tokenizer = AutoTokenizer.from_pretrained(self.model_name)
            self.model = AutoModelForCausalLM.from_pretrained(
                self.model_name,
                quantization_config=quantization_for(self.device, load_in_4bit),
                device_map="auto" if on_cuda else None,
                torch_dtype=torch.bfloat16 if on_cuda else torch.float32
            )
        except torch.cuda.OutOfMemoryError:
            logger.error(f"CUDA out of memory while loading {self.model_name}")
            raise
        except Exception as e:
            logger.error(f"Failed to load model {self.model_name}: {e}")
            raise

        self.model.eval()

        if on_cuda:
            logger.info(f"GPU memory allocated: {torch.cuda.memory_allocated() / 1e9:.2f}GB")

    def is_loaded(self):
        return self.model is not None and self.tokenizer is not None

    def generate(self, prompt, max_tokens=256, temperature=0.3):
        """
        Complete an already formatted prompt.

        Temperature 0 means greedy decoding.

        Returns:
            str: New text only, stripped

        Raises:
            RuntimeError: If model not loaded
            torch.cuda.OutOfMemoryError: If GPU runs out of memory
        """
        if not self.is_loaded():
            raise RuntimeError("Model not loaded")

        encoded = self.tokenizer(prompt, return_tensors="pt").to(self.model.device)
        prompt_length = encoded.input_ids.shape[1]
        sampling = temperature > 0

        started = time.time()
        try:
            with torch.no_grad():
                output = self.model.generate(
                    **encoded,
                    max_new_tokens=max_tokens,
                    do_sample=sampling,
                    temperature=temperature if sampling else None,
                    pad_token_id=self.tokenizer.eos_token_id
                )
        except torch.cuda.OutOfMemoryError:
            logger.error(f"CUDA OOM during generation ({prompt_length} prompt tokens)")
            raise

        new_tokens = output[0][prompt_length:]
        logger.debug(
            f"{len(new_tokens)} tokens generated in {(time.time() - started) * 1000:.0f}ms"
        )
        return self.tokenizer.decode(new_tokens, skip_special_tokens=True).strip()

    def chat(self, system_message, user_message, max_tokens=256, temperature=0.3):
        prompt = self.formatter.format_chat(system_message, user_message)
        return self.generate(prompt, max_tokens=max_tokens, temperature=temperature)

    def get_model_info(self):
        info = {
            "model_name": self.model_name,
            "device": self.device,
            "is_loaded": self.is_loaded(),
            "formatting_method": self.formatter.get_info()["formatting_method"],
        }
        if self.device == "cuda":
            info["gpu_memory_allocated_gb"] = round(torch.cuda.memory_allocated() / 1e9, 2)
        return info
