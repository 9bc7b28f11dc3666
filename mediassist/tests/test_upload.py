import pytest

from mediassist.config import NoteGenerationMode, settings
from mediassist.services import soap_templates
from mediassist.tests.helpers import CHEST_PAIN_TRANSCRIPT, SOAP_OUTPUT, upload, use_nlp, use_stt


def transcript_total(client, headers):
    return client.get("/api/transcripts", headers=headers).json()["pagination"]["total"]


class TestUploadValidation:
    def test_missing_file(self, client, doctor):
        response = client.post(
            "/api/upload-audio",
            headers=doctor["headers"],
            data={"patientName": "Jane Doe"},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "No audio file provided"

    def test_missing_patient_name(self, client, doctor):
        response = upload(client, doctor["token"], patient_name="   ")
        assert response.status_code == 400
        assert response.json()["detail"] == "Patient name is required"

    def test_unsupported_language(self, client, doctor):
        response = upload(client, doctor["token"], language="xx")
        assert response.status_code == 422
        assert "Unsupported language 'xx'" in response.json()["detail"]

    def test_disallowed_mime_type(self, client, doctor):
        response = upload(client, doctor["token"], audio=b"not audio", content_type="text/plain")
        assert response.status_code == 415
        assert response.json()["detail"].startswith("Invalid file type")

    def test_empty_file(self, client, doctor):
        response = upload(client, doctor["token"], audio=b"")
        assert response.status_code == 400
        assert response.json()["detail"] == "Audio file is empty"

    def test_oversized_file(self, client, doctor, monkeypatch):
        monkeypatch.setattr(settings, "max_file_size_mb", 0)
        response = upload(client, doctor["token"])
        assert response.status_code == 413

    def test_rejected_uploads_write_nothing(self, client, doctor, monkeypatch):
        upload(client, doctor["token"], audio=b"not audio", content_type="text/plain")
        upload(client, doctor["token"], language="xx")
        monkeypatch.setattr(settings, "max_file_size_mb", 0)
        upload(client, doctor["token"])
        assert transcript_total(client, doctor["headers"]) == 0

    def test_patients_cannot_upload(self, client, patient):
        response = upload(client, patient["token"])
        assert response.status_code == 403
        assert response.json()["detail"] == "Insufficient permissions"

    def test_requires_token(self, client):
        response = client.post("/api/upload-audio", data={"patientName": "Jane Doe"})
        assert response.status_code == 401

    def test_mime_parameters_are_ignored(self, client, doctor):
        use_stt(client, {"text": "Routine visit, feeling well."})
        response = upload(client, doctor["token"], content_type="audio/webm;codecs=opus")
        assert response.status_code == 200
        assert response.json()["status"] == "completed"


class TestTranscriptionOutcome:
    def test_missing_stt_key_fails_transcript_not_request(self, client, doctor):
        response = upload(client, doctor["token"])
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["status"] == "failed"
        assert body["transcript"] is None
        assert body["error"] == "Speech-to-text API key is not configured"
        assert body["note_generation"] == "skipped"
        assert body["note_id"] is None
        assert body["message"] == "Audio processing failed"

        status = client.get(f"/api/transcript/{body['transcript_id']}/status", headers=doctor["headers"])
        assert status.json()["status"] == "failed"
        assert status.json()["error_details"] == "Speech-to-text API key is not configured"

    def test_provider_http_error(self, client, doctor):
        use_stt(client, {"error": "Model is loading"}, status_code=503)
        body = upload(client, doctor["token"]).json()
        assert body["status"] == "failed"
        assert body["error"].startswith("Transcription request failed")

    def test_blank_text_is_a_failure(self, client, doctor):
        use_stt(client, {"text": "   "})
        body = upload(client, doctor["token"]).json()
        assert body["status"] == "failed"
        assert body["error"] == "Transcription returned no text"

    def test_completed_transcript_is_recorded(self, client, doctor, patient):
        use_stt(client, {
            "text": CHEST_PAIN_TRANSCRIPT,
            "confidence": 0.93,
            "chunks": [
                {"text": "What brings you in today?", "timestamp": [0.0, 1.8], "speaker": "Doctor"},
                {"text": "I have had chest pain.", "timestamp": [1.8, 3.2]},
            ],
        })
        use_nlp(client, [{"generated_text": SOAP_OUTPUT}])
        body = upload(client, doctor["token"], patient_id=patient["user"]["id"], language="en").json()

        assert body["success"] is True
        assert body["status"] == "completed"
        assert body["transcript"] == CHEST_PAIN_TRANSCRIPT
        assert body["session_id"].startswith("session_")
        assert body["session_id"].endswith(f"_{doctor['user']['id']}")
        assert body["audio_file_id"].startswith("audio_")

        transcript = client.get(f"/api/transcript/{body['transcript_id']}", headers=doctor["headers"]).json()
        assert transcript["confidence"] == 0.93
        assert transcript["patient_id"] == patient["user"]["id"]
        assert transcript["processing_metrics"]["audio_quality"] == "excellent"
        assert [s["speaker"] for s in transcript["speaker_segments"]] == ["Doctor", "Speaker"]
        assert transcript["speaker_segments"][1]["start_time"] == 1.8

    def test_duration_read_from_container_when_not_reported(self, client, doctor):
        use_stt(client, {"text": "Routine visit, feeling well."})
        body = upload(client, doctor["token"]).json()
        # tone_wav(20) is two seconds long
        assert body["duration"] == pytest.approx(2.0, abs=0.05)

    def test_reupload_creates_new_transcript(self, client, doctor):
        use_stt(client, {"text": "Routine visit, feeling well."})
        first = upload(client, doctor["token"]).json()
        second = upload(client, doctor["token"]).json()
        assert first["transcript_id"] != second["transcript_id"]
        assert transcript_total(client, doctor["headers"]) == 2

    def test_malformed_provider_text_fails_transcript(self, client, doctor):
        use_stt(client, {"text": 123})
        response = upload(client, doctor["token"])
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "failed"
        assert body["error"] == "Transcription service returned an invalid response"

        listing = client.get("/api/transcripts", headers=doctor["headers"]).json()
        assert [item["status"] for item in listing["items"]] == ["failed"]

    def test_transcriber_exception_fails_transcript(self, client, doctor, monkeypatch):
        async def explode(*args, **kwargs):
            raise RuntimeError("socket closed")

        service = use_stt(client, {"text": CHEST_PAIN_TRANSCRIPT})
        monkeypatch.setattr(service, "transcribe", explode)

        response = upload(client, doctor["token"])
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "failed"
        assert body["error"] == "Transcription failed"
        assert body["note_generation"] == "skipped"

        status = client.get(f"/api/transcript/{body['transcript_id']}/status", headers=doctor["headers"])
        assert status.json()["status"] == "failed"


class TestNoteGenerationOutcome:
    def test_generated_inline(self, client, doctor):
        use_stt(client, {"text": CHEST_PAIN_TRANSCRIPT, "confidence": 0.9})
        use_nlp(client, [{"generated_text": SOAP_OUTPUT}])
        body = upload(client, doctor["token"]).json()

        assert body["note_generation"] == "generated"
        assert body["note_generated"] is True
        assert body["message"] == "Audio processed and notes generated successfully"

        note = client.get(f"/api/notes/{body['note_id']}", headers=doctor["headers"]).json()["note"]
        assert note["status"] == "pending"
        assert note["transcript_id"] == body["transcript_id"]
        assert note["subjective"].startswith("Patient reports chest pain")
        assert note["medications"] == ["Lisinopril 10mg daily"]
        assert note["processing_metrics"]["confidence_score"] == 0.95
        assert note["access_log"][0]["action"] == "created"
        assert note["patient_summary"].startswith("Your Visit Summary:")

    def test_note_failure_keeps_upload_successful(self, client, doctor):
        use_stt(client, {"text": CHEST_PAIN_TRANSCRIPT})
        response = upload(client, doctor["token"])
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["status"] == "completed"
        assert body["note_generation"] == "failed"
        assert body["note_generated"] is False
        assert body["note_id"] is None
        assert body["note_error"] == "Text-generation API key is not configured"
        assert body["message"] == "Audio processed; note generation failed"

    def test_unreachable_model_uses_keyword_template(self, client, doctor):
        use_stt(client, {"text": CHEST_PAIN_TRANSCRIPT})
        use_nlp(client, {"error": "overloaded"}, status_code=503)
        body = upload(client, doctor["token"]).json()
        assert body["note_generation"] == "generated"

        note = client.get(f"/api/notes/{body['note_id']}", headers=doctor["headers"]).json()["note"]
        template = soap_templates.soap_sections(CHEST_PAIN_TRANSCRIPT)
        assert note["subjective"] == template["subjective"]
        assert note["plan"] == template["plan"]
        assert note["processing_metrics"]["confidence_score"] == 0.7
        assert note["diagnoses"][0]["code"] == "R07.9"

    def test_background_generation(self, client, doctor):
        client.app.state.note_generation_mode = NoteGenerationMode.BACKGROUND
        use_stt(client, {"text": CHEST_PAIN_TRANSCRIPT})
        use_nlp(client, [{"generated_text": SOAP_OUTPUT}])

        body = upload(client, doctor["token"]).json()
        assert body["note_generation"] == "scheduled"
        assert body["note_id"] is None
        assert body["message"] == "Audio processed; note generation scheduled"

        notes = client.get(
            "/api/notes",
            headers=doctor["headers"],
            params={"transcript_id": body["transcript_id"]},
        ).json()
        assert notes["pagination"]["total"] == 1
        assert notes["items"][0]["transcript_id"] == body["transcript_id"]

    def test_background_generation_failure_is_only_logged(self, client, doctor):
        client.app.state.note_generation_mode = NoteGenerationMode.BACKGROUND
        use_stt(client, {"text": CHEST_PAIN_TRANSCRIPT})

        response = upload(client, doctor["token"])
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["note_generation"] == "scheduled"
        assert body["note_id"] is None

        notes = client.get(
            "/api/notes",
            headers=doctor["headers"],
            params={"transcript_id": body["transcript_id"]},
        ).json()
        assert notes["pagination"]["total"] == 0
        assert notes["items"] == []


class TestTranscriptAccess:
    def test_other_doctor_is_denied(self, client, doctor, other_doctor):
        body = upload(client, doctor["token"]).json()
        response = client.get(f"/api/transcript/{body['transcript_id']}", headers=other_doctor["headers"])
        assert response.status_code == 403
        assert response.json()["detail"] == "Access denied"

    def test_referenced_patient_can_read(self, client, doctor, patient):
        body = upload(client, doctor["token"], patient_id=patient["user"]["id"]).json()
        response = client.get(f"/api/transcript/{body['transcript_id']}/status", headers=patient["headers"])
        assert response.status_code == 200

        listing = client.get("/api/transcripts", headers=patient["headers"]).json()
        assert listing["pagination"]["total"] == 1

    def test_unknown_transcript(self, client, doctor):
        response = client.get("/api/transcript/missing", headers=doctor["headers"])
        assert response.status_code == 404
        assert response.json()["detail"] == "Transcript not found"

    def test_list_filters_by_status(self, client, doctor):
        upload(client, doctor["token"])
        use_stt(client, {"text": "Routine visit, feeling well."})
        upload(client, doctor["token"])

        listing = client.get("/api/transcripts", headers=doctor["headers"], params={"status": "failed"}).json()
        assert listing["pagination"] == {"current": 1, "pages": 1, "total": 1}
        assert listing["items"][0]["status"] == "failed"
