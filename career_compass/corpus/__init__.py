"""Career corpus: load once, share read-only."""

from career_compass.corpus.career_corpus import CareerCorpus, load_corpus

__all__ = ["CareerCorpus", "load_corpus"]
