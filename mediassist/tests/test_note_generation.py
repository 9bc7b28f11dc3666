import asyncio
import json

import httpx
import pytest

from mediassist.core.errors import NoteGenerationError
from mediassist.services import soap_templates
from mediassist.services.nlp_service import (
    FALLBACK_CONFIDENCE,
    NLPService,
    calculate_confidence,
    has_section_headers,
    parse_soap_sections,
    simplify_medical_text,
)
from mediassist.tests.helpers import CHEST_PAIN_TRANSCRIPT, SOAP_OUTPUT, json_transport

RESPIRATORY_TRANSCRIPT = "Patient has had a cough and fever for five days. Chest X-ray ordered."
ROUTINE_TRANSCRIPT = "Annual checkup. Patient feels well and takes a multivitamin."


def nlp_with(transport):
    service = NLPService(transport=transport)
    service.api_key = "test-key"
    return service


class TestKeywordTemplates:
    def test_classification(self):
        assert soap_templates.classify("CHEST PAIN and a cough") == soap_templates.CHEST_PAIN
        assert soap_templates.classify(RESPIRATORY_TRANSCRIPT) == soap_templates.RESPIRATORY
        assert soap_templates.classify(ROUTINE_TRANSCRIPT) == soap_templates.ROUTINE

    def test_medications_follow_keyword_order(self):
        assert soap_templates.extract_medications("multivitamin, then ibuprofen") == [
            "Ibuprofen 600mg q6h PRN pain",
            "Multivitamin daily",
            "Omega-3 supplement daily",
        ]
        assert soap_templates.extract_medications("no drugs mentioned") == []

    def test_diagnoses(self):
        codes = [d["code"] for d in soap_templates.extract_diagnoses(CHEST_PAIN_TRANSCRIPT)]
        assert codes == ["R07.9", "I10"]
        assert soap_templates.extract_diagnoses("suspected pneumonia")[0]["code"] == "J18.9"
        assert soap_templates.extract_diagnoses(ROUTINE_TRANSCRIPT)[0]["code"] == "Z00.00"

    def test_entities(self):
        entities = {e["entity"]: e for e in soap_templates.extract_entities(RESPIRATORY_TRANSCRIPT)}
        assert entities["cough"]["type"] == "symptom"
        assert entities["fever"]["confidence"] == 0.8
        assert entities["chest x-ray"]["type"] == "procedure"
        assert "pneumonia" not in entities

    def test_extraction_is_deterministic(self):
        for transcript in (CHEST_PAIN_TRANSCRIPT, RESPIRATORY_TRANSCRIPT, ROUTINE_TRANSCRIPT):
            assert soap_templates.soap_sections(transcript) == soap_templates.soap_sections(transcript)
            assert soap_templates.extract_entities(transcript) == soap_templates.extract_entities(transcript)
            assert soap_templates.extract_follow_up(transcript) == soap_templates.extract_follow_up(transcript)

    def test_sections_are_copies(self):
        sections = soap_templates.soap_sections(ROUTINE_TRANSCRIPT)
        sections["plan"] = "changed"
        assert soap_templates.soap_sections(ROUTINE_TRANSCRIPT)["plan"] != "changed"


class TestParsing:
    def test_sections_split_by_headers(self):
        sections = parse_soap_sections(SOAP_OUTPUT, CHEST_PAIN_TRANSCRIPT)
        assert sections["subjective"] == "Patient reports chest pain for two days, worse on exertion."
        assert sections["plan"].startswith("Ibuprofen 600mg")

    def test_missing_sections_come_from_template(self):
        generated = "Subjective: mild headache\nplan - rest"
        sections = parse_soap_sections(generated, ROUTINE_TRANSCRIPT)
        template = soap_templates.soap_sections(ROUTINE_TRANSCRIPT)
        assert sections["subjective"] == "mild headache"
        assert sections["objective"] == template["objective"]
        assert sections["assessment"] == template["assessment"]

    def test_header_detection(self):
        assert has_section_headers(SOAP_OUTPUT)
        assert not has_section_headers("The patient seems fine overall.")

    def test_confidence(self):
        assert calculate_confidence("short") == 0.7
        assert calculate_confidence("Subjective: ok") == 0.8
        assert calculate_confidence("Subjective: ok, diagnosis pending") == 0.9
        assert calculate_confidence(SOAP_OUTPUT) == 0.95

    def test_simplify_medical_text(self):
        assert simplify_medical_text("BP 120/80 mmHg, HR 70 bpm, T 98.6°F") == (
            "BP 120/80 mmHg (blood pressure unit), HR 70 beats per minute, T 98.6 degrees Fahrenheit"
        )
        assert simplify_medical_text("Ibuprofen 600mg q6h PRN") == "Ibuprofen 600 milligrams every 6 hours as needed"


class TestNLPService:
    def test_missing_key_raises(self):
        service = NLPService()
        service.api_key = None
        with pytest.raises(NoteGenerationError):
            asyncio.run(service.generate_soap_note(CHEST_PAIN_TRANSCRIPT))

    def test_model_output_is_parsed(self):
        captured = {}

        def handler(request):
            captured["body"] = json.loads(request.content)
            captured["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json=[{"generated_text": SOAP_OUTPUT}])

        result = asyncio.run(nlp_with(httpx.MockTransport(handler)).generate_soap_note(CHEST_PAIN_TRANSCRIPT))

        assert result.used_fallback is False
        assert result.assessment.startswith("Musculoskeletal chest pain")
        assert result.confidence == 0.95
        assert captured["auth"] == "Bearer test-key"
        assert captured["body"]["parameters"]["return_full_text"] is False
        assert CHEST_PAIN_TRANSCRIPT in captured["body"]["inputs"]

    def test_summary_text_payload(self):
        service = nlp_with(json_transport({"summary_text": SOAP_OUTPUT}))
        result = asyncio.run(service.generate_soap_note(CHEST_PAIN_TRANSCRIPT))
        assert result.used_fallback is False

    @pytest.mark.parametrize("payload,status_code", [
        ({"error": "Model is loading"}, 503),
        ([{"generated_text": "ok"}], 200),
        ([{"generated_text": "The patient is doing fine, nothing else to add."}], 200),
        ({"error": "bad input"}, 200),
    ])
    def test_fallback(self, payload, status_code):
        service = nlp_with(json_transport(payload, status_code))
        result = asyncio.run(service.generate_soap_note(RESPIRATORY_TRANSCRIPT))

        template = soap_templates.soap_sections(RESPIRATORY_TRANSCRIPT)
        assert result.used_fallback is True
        assert result.confidence == FALLBACK_CONFIDENCE
        assert result.subjective == template["subjective"]
        assert result.recommendations == soap_templates.extract_recommendations(RESPIRATORY_TRANSCRIPT)

    def test_fallback_is_deterministic(self):
        service = nlp_with(json_transport({}, 500))
        first = asyncio.run(service.generate_soap_note(CHEST_PAIN_TRANSCRIPT))
        second = asyncio.run(service.generate_soap_note(CHEST_PAIN_TRANSCRIPT))
        assert first.model_dump(exclude={"processing_time_ms"}) == second.model_dump(exclude={"processing_time_ms"})

    def test_patient_summary(self):
        sections = soap_templates.soap_sections(CHEST_PAIN_TRANSCRIPT)
        summary = NLPService().generate_patient_summary(sections)
        assert summary.startswith("Your Visit Summary:\n\nWhat You Told Us: ")
        assert "mmHg (blood pressure unit)" in summary
        assert "Your Care Plan: 1. Pain management with ibuprofen 600 milligrams" in summary
        assert summary.endswith("contact us if you have any questions or concerns.")
