"""
portfolio_advisor.research: Optional external research augmentation.

Modules:
  augmenter: ResearchAugmenter: runs the research topics for one company
              and reports findings plus cited source names.
"""
