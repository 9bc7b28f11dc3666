"""
MediAssist - Consultation Documentation Backend

A FastAPI service that turns recorded patient consultations into transcripts,
SOAP notes and patient-facing summaries, with translation and speech output.
"""

__version__ = "1.0.0"
