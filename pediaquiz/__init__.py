"""PediaQuiz API: question bank, attempt history and the AI content pipeline."""

__version__ = "2.0.0"
