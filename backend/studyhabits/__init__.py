"""Study-habits tracking backend.

Users record semesters, classes and assignments, log study sessions with
the study, distraction and assignment work that happened in them, and
query filtered summaries of where their time went. `main` holds the
FastAPI application; the other modules contain the concrete services,
repositories and models.
"""
