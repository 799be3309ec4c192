"""Quick check that Ollama is running, has the search model, and answers in JSON."""

import json
import sys

import httpx

from outline_search.config import get_llm_model, get_llm_timeout, get_ollama_url
from outline_search.llm.provider import resolve_model_family


def main() -> None:
    """Check Ollama connectivity, model availability and JSON output mode."""
    url = get_ollama_url()
    model = get_llm_model()
    print(f"Checking Ollama at {url} for model {model} ({resolve_model_family(model)} family)...")

    try:
        resp = httpx.get(f"{url}/api/tags", timeout=5.0)
        resp.raise_for_status()
        models = [m["name"] for m in resp.json().get("models", [])]
        print(f"Available models: {', '.join(models) or '(none)'}")
        if not any(model in m for m in models):
            print(f"  {model} not found, run: ollama pull {model}")
            sys.exit(1)
        print(f"  {model} is available")

        resp = httpx.post(
            f"{url}/api/generate",
            json={
                "model": model,
                "prompt": 'Reply with {"search_list": "recipes + sugar"}',
                "format": "json",
                "stream": False,
            },
            timeout=get_llm_timeout(),
        )
        resp.raise_for_status()
        data = json.loads(resp.json()["response"])
        print(f"  JSON output OK: {data}")
    except httpx.ConnectError:
        print("  Ollama is not running. Start it with: ollama serve")
        sys.exit(1)
    except Exception as e:
        print(f"  Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
