"""Known OpenAI-compatible endpoints, in fallback order."""

from typing import Dict

from .base import ProviderConfig

DEFAULT_PROVIDER = "deepseek"

_TUNED_SAMPLING = {"top_p": 0.95, "temperature": 0.6}
_OPENROUTER_HEADERS = {
    "HTTP-Referer": "http://localhost:3000",
    "X-Title": "HR Assistant",
}

DEFAULT_PROVIDERS: Dict[str, ProviderConfig] = {
    "deepseek": ProviderConfig(
        name="deepseek",
        label="DeepSeek Chat",
        base_url="https://api.deepseek.com",
        model="deepseek-chat",
        api_key_env="DEEPSEEK_API_KEY",
        supports_json_mode=True,
    ),
    "nvidia_qwen": ProviderConfig(
        name="nvidia_qwen",
        label="Qwen 3.5 397B",
        base_url="https://integrate.api.nvidia.com/v1",
        model="qwen/qwen3.5-397b-a17b",
        api_key_env="NVIDIA_API_KEY",
        extra_body=dict(_TUNED_SAMPLING),
    ),
    "nvidia_nemotron": ProviderConfig(
        name="nvidia_nemotron",
        label="Nemotron Super 49B",
        base_url="https://integrate.api.nvidia.com/v1",
        model="nvidia/llama-3.3-nemotron-super-49b-v1.5",
        api_key_env="NVIDIA_API_KEY",
        extra_body=dict(_TUNED_SAMPLING),
    ),
    "openrouter_llama": ProviderConfig(
        name="openrouter_llama",
        label="Llama 3.3 70B",
        base_url="https://openrouter.ai/api/v1",
        model="meta-llama/llama-3.3-70b-instruct:free",
        api_key_env="OPENROUTER_API_KEY",
        extra_body=dict(_TUNED_SAMPLING),
        extra_headers=dict(_OPENROUTER_HEADERS),
    ),
    "openrouter_gemma": ProviderConfig(
        name="openrouter_gemma",
        label="Gemma 3 27B",
        base_url="https://openrouter.ai/api/v1",
        model="google/gemma-3-27b-it:free",
        api_key_env="OPENROUTER_API_KEY",
        extra_body=dict(_TUNED_SAMPLING),
        extra_headers=dict(_OPENROUTER_HEADERS),
    ),
}
