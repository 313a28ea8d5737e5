"""
Prompt Formatter - chat formatting for one system + user exchange

Order of attempts:
1. Tokenizer chat template with a system role
2. Tokenizer chat template with the system text folded into the user turn
   (Mistral-style templates reject the system role)
3. Instruction tags for a known model family
4. The merged text unchanged
"""

import logging
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

# (name markers, family), most specific first
FAMILY_MARKERS = (
    (("llama-3", "llama3"), "llama-3"),
    (("llama",), "llama"),
    (("mistral", "mixtral"), "mistral"),
    (("zephyr",), "zephyr"),
    (("phi",), "phi"),
)

INSTRUCTION_TAGS = {
    "mistral": "[INST] {text} [/INST]",
    "llama": "[INST] {text} [/INST]",
    "llama-3": (
        "<|begin_of_text|><|start_header_id|>user<|end_header_id|>\n\n"
        "{text}<|eot_id|><|start_header_id|>assistant<|end_header_id|>\n\n"
    ),
    "zephyr": "<|user|>\n{text}\n<|assistant|>\n",
    "phi": "<|user|>\n{text}<|end|>\n<|assistant|>\n",
}


def detect_model_family(model_name: str) -> str:
    """
    Examples:
        >>> detect_model_family("meta-llama/Meta-Llama-3-8B-Instruct")
        'llama-3'
        >>> detect_model_family("gpt2")
        'generic'
    """
    lower = model_name.lower()
    for markers, family in FAMILY_MARKERS:
        if any(marker in lower for marker in markers):
            return family
    return "generic"


def merge_messages(system_message: Optional[str], user_message: str) -> str:
    if not system_message:
        return user_message
    return f"{system_message}\n\n{user_message}"


class PromptFormatter:
    """Formats single-turn chats for one model"""

    def __init__(self, model_name: str, tokenizer=None):
        """
        Args:
            model_name: HuggingFace model identifier
            tokenizer: Tokenizer, used when it carries a chat_template
        """
        self.model_name = model_name
        self.tokenizer = tokenizer
        self.model_family = detect_model_family(model_name)
        self.has_chat_template = getattr(tokenizer, "chat_template", None) is not None

        logger.info(f"Prompt formatting for {model_name}: {self.formatting_method}")

    @property
    def formatting_method(self) -> str:
        if self.has_chat_template:
            return "tokenizer_template"
        if self.model_family in INSTRUCTION_TAGS:
            return "manual"
        return "none"

    def _apply_template(self, messages: List[Dict[str, str]]) -> str:
        return self.tokenizer.apply_chat_template(
            messages,
            tokenize=False,
            add_generation_prompt=True
        )

    def format_chat(self, system_message: Optional[str], user_message: str) -> str:
        """
        Model-ready prompt for one exchange.

        Examples:
            >>> PromptFormatter("mistralai/Mistral-7B-Instruct-v0.2").format_chat(None, "Hi")
            '[INST] Hi [/INST]'
        """
        merged = merge_messages(system_message, user_message)

        if self.has_chat_template:
            attempts = [[{"role": "user", "content": merged}]]
            if system_message:
                attempts.insert(0, [
                    {"role": "system", "content": system_message},
                    {"role": "user", "content": user_message},
                ])

            for messages in attempts:
                try:
                    return self._apply_template(messages)
                except Exception as e:
                    logger.debug(f"Chat template attempt failed ({len(messages)} messages): {e}")

            logger.warning(f"Chat template unusable for {self.model_name}, using instruction tags")

        tags = INSTRUCTION_TAGS.get(self.model_family)
        return tags.format(text=merged) if tags else merged

    def get_info(self) -> dict:
        return {
            "model_name": self.model_name,
            "model_family": self.model_family,
            "has_chat_template": self.has_chat_template,
            "formatting_method": self.formatting_method,
        }
