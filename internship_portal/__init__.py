"""
Internship Submission Portal
Students submit assignment files; staff review and rank them.

Architecture:
- MongoDB: profiles, assignments, submissions, leaderboards
- Identity provider: signs the bearer tokens students and staff present
- Google Drive: hosts the uploaded files
"""

__version__ = "1.0.0"
