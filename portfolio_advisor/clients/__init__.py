"""
Remote service clients for the enrichment pipeline.

Submodules:
  analysis_client  : reasoning service (OpenAI-compatible chat completions)
  research_client  : external research service (Perplexity-compatible)

Both clients are thin ``httpx`` wrappers. They take their API key as a
constructor argument (resolved from a ``CredentialProvider`` by the caller)
and accept an optional ``httpx.Client`` so tests can inject
``httpx.MockTransport``.

Credential placement (.env, gitignored):
  OPENAI_API_KEY       : reasoning service key
  PERPLEXITY_API_KEY   : research service key (optional; research is skipped without it)
"""
