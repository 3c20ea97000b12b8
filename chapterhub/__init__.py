"""
ChapterHub — Points, Objectives & Ranking for Volunteer Chapters
=================================================================
Tracks how members of a JCI-style chapter earn points (manual adjustments,
activity participation, completed objectives), keeps an append-only ledger
of every change, and derives ranks and leaderboards from it.

Package layout::

    chapterhub/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Roles, point sources, windows
    ├── errors.py          # Domain error taxonomy
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   ├── models.py      # All ORM models
    │   └── seed.py        # Starter objective catalogue
    ├── engine/
    │   ├── policy.py      # Central authorization decisions
    │   ├── objectives.py  # Objective taxonomy + progress rules
    │   ├── windows.py     # Time windows + chart buckets
    │   └── ranking.py     # Rank + leaderboard helpers
    ├── services/
    │   ├── points_service.py      # Ledger writes + aggregates
    │   ├── objective_service.py   # Catalogue + assignments
    │   ├── member_service.py      # Registration + profile admin
    │   ├── activity_service.py    # Participation rewards
    │   ├── complaint_service.py   # Member complaints
    │   ├── admin_service.py       # Audit log helpers
    │   ├── reconciliation_service.py  # Ledger/total drift repair
    │   └── log_buffer.py          # In-memory log tail
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # JWT → Actor, engine, session
        └── routes/        # Members, points, objectives, activities, admin
"""

__version__ = "0.1.0"
