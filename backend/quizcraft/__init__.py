"""QuizCraft backend package.

The FastAPI application lives in `quizcraft.main`. The scoring engine
(`quizcraft.scoring`) and the aggregate updater (`quizcraft.aggregates`)
are pure modules with no database or HTTP dependencies; services,
repositories and models wrap them in the persistence layer.
"""
