"""
DecisionLab — Decision Utility & Insight Core.

Architecture:
    decisionlab/
    ├── api/             # FastAPI routers (HTTP layer)
    ├── db/              # SQLAlchemy models, engine, repositories
    ├── middleware/      # Request context, error handling
    ├── decisions/       # Decision lifecycle (create, complete, archive)
    ├── utility/         # MAUT utility engine (scores → recommendation)
    ├── outcomes/        # Outcome logging (fires insights + gamification)
    ├── insights/        # Correlation, bias, accuracy engines + orchestrator
    └── gamification/    # Streaks, badges, milestones over the UserStat row

Data Flow:
    Decision → Factors/Options/Scores → UtilityEngine → Recommendation
    Outcome logged → InsightOrchestrator (correlation | bias | accuracy)
                   → GamificationTracker (counters, streak, badges)

Every component receives its store (an async_sessionmaker) explicitly.

Version: 1.0.0
"""

__version__ = "1.0.0"
