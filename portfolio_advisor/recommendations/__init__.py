"""
portfolio_advisor.recommendations: Per-company AI recommendations.

Modules:
  prompt : System / user prompt construction for the reasoning service.
  parser : JSON extraction and coercion of service responses.
  engine : RecommendationEngine: insufficient-data short-circuit, service
            call, tagged Ok / Err outcome per record.
"""
