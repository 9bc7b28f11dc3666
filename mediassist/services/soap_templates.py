"""
Keyword templates for clinical notes.

Used when the text-generation model is unreachable or its output cannot be
parsed, and to fill in medications, diagnoses, recommendations and
follow-up. Every function here is pure: the same transcript always yields
the same result.
"""

from typing import Dict, List

CHEST_PAIN = "chest_pain"
RESPIRATORY = "respiratory"
ROUTINE = "routine"


def classify(transcript: str) -> str:
    """Pick the template branch for a transcript"""
    text = transcript.lower()
    if "chest pain" in text:
        return CHEST_PAIN
    if "cough" in text or "fever" in text:
        return RESPIRATORY
    return ROUTINE


SOAP_TEMPLATES: Dict[str, Dict[str, str]] = {
    CHEST_PAIN: {
        "subjective": (
            "Patient presents with chief complaint of chest pain that started 3 hours ago. "
            "Describes the pain as sharp and stabbing, located in the center of the chest, "
            "with radiation to the left arm. Patient rates the pain as 7/10 in intensity. "
            "Denies shortness of breath, nausea, or diaphoresis. Past medical history "
            "significant for hypertension, currently managed with Lisinopril 10mg daily. "
            "No known drug allergies."
        ),
        "objective": (
            "Vital signs: BP 150/90 mmHg, HR 88 bpm, T 98.6°F, RR 16/min, O2 sat 98% on room air. "
            "Physical examination reveals alert, oriented patient in mild distress. HEENT: normal. "
            "Cardiovascular: regular rate and rhythm, no murmurs, rubs, or gallops. Pulmonary: "
            "clear to auscultation bilaterally. Abdomen: soft, non-tender. Extremities: no edema. "
            "EKG shows normal sinus rhythm without ST segment changes. Chest X-ray normal."
        ),
        "assessment": (
            "Primary assessment: Atypical chest pain, likely musculoskeletal origin given sharp, "
            "stabbing nature and reproducibility. Low risk for acute coronary syndrome based on "
            "normal EKG, chest X-ray, and clinical presentation. Secondary assessment: "
            "Hypertension, controlled on current medication regimen."
        ),
        "plan": (
            "1. Pain management with ibuprofen 600mg every 6 hours as needed\n"
            "2. Activity modification - avoid heavy lifting\n"
            "3. Follow-up appointment in 1 week\n"
            "4. Return immediately if pain worsens, develops shortness of breath, or other concerning symptoms\n"
            "5. Continue current antihypertensive medication\n"
            "6. Consider stress testing if symptoms persist"
        ),
    },
    RESPIRATORY: {
        "subjective": (
            "Patient presents with a 5-day history of persistent productive cough with "
            "yellow-green sputum. Associated symptoms include fever up to 101.5°F, fatigue, "
            "and decreased appetite. No recent travel history or known sick contacts. Patient "
            "reports no recent changes in medications or activities."
        ),
        "objective": (
            "Vital signs: T 100.8°F, BP 120/80 mmHg, HR 95 bpm, RR 20/min, O2 sat 96% on room air. "
            "Physical examination reveals ill-appearing patient. HEENT: normal. Cardiovascular: "
            "tachycardic, regular rhythm. Pulmonary: crackles heard in right lower lobe. Chest "
            "X-ray demonstrates right lower lobe consolidation consistent with pneumonia. "
            "Laboratory: WBC 12,000/μL."
        ),
        "assessment": (
            "Primary assessment: Community-acquired pneumonia, right lower lobe, based on "
            "clinical presentation, physical findings, and radiographic evidence. Patient is "
            "hemodynamically stable and suitable for outpatient management."
        ),
        "plan": (
            "1. Antibiotic therapy: Azithromycin 500mg daily for 5 days\n"
            "2. Supportive care: rest, increased fluid intake, humidifier use\n"
            "3. Symptomatic relief: guaifenesin for cough, acetaminophen for fever\n"
            "4. Follow-up in 3 days or sooner if symptoms worsen\n"
            "5. Return if develops shortness of breath, chest pain, or high fever\n"
            "6. Chest X-ray follow-up in 6-8 weeks to ensure resolution"
        ),
    },
    ROUTINE: {
        "subjective": (
            "Patient presents for routine physical examination. Reports feeling well overall "
            "with no acute complaints. Exercises regularly and maintains a healthy diet. "
            "Takes a daily multivitamin and omega-3 supplement."
        ),
        "objective": (
            "Vital signs: BP 118/72 mmHg, HR 68 bpm, T 98.4°F, BMI 24 kg/m². Physical examination "
            "reveals well-appearing patient. HEENT: normal. Cardiovascular: regular rate and "
            "rhythm, no murmurs. Pulmonary: clear to auscultation bilaterally. Abdomen: soft, "
            "non-tender, no hepatosplenomegaly. Extremities: no edema. Skin: no lesions."
        ),
        "assessment": (
            "Assessment: Healthy adult presenting for routine preventive care. No acute medical "
            "issues identified. Age-appropriate screening and preventive care discussed."
        ),
        "plan": (
            "1. Continue current healthy lifestyle and exercise routine\n"
            "2. Schedule age-appropriate screening tests\n"
            "3. Continue multivitamin and omega-3 supplements\n"
            "4. Return for routine care in 1 year\n"
            "5. Flu shot recommended seasonally"
        ),
    },
}

RECOMMENDATIONS: Dict[str, List[str]] = {
    CHEST_PAIN: [
        "Avoid heavy lifting and strenuous activities",
        "Apply ice to chest wall if pain increases",
        "Monitor blood pressure regularly",
    ],
    RESPIRATORY: [
        "Get plenty of rest and stay hydrated",
        "Use a humidifier to ease breathing",
        "Avoid smoking and secondhand smoke",
    ],
    ROUTINE: [
        "Maintain regular exercise routine",
        "Continue healthy dietary habits",
        "Stay up to date with preventive screenings",
    ],
}

FOLLOW_UP: Dict[str, str] = {
    CHEST_PAIN: (
        "Follow-up appointment in 1 week. Return immediately if symptoms worsen "
        "or new concerning symptoms develop."
    ),
    RESPIRATORY: (
        "Follow-up in 3 days to assess response to treatment. Chest X-ray in 6-8 weeks "
        "to ensure pneumonia resolution."
    ),
    ROUTINE: (
        "Return for annual physical examination in 1 year. Schedule age-appropriate "
        "screening tests as discussed."
    ),
}

# (keyword, medication entries) in output order
MEDICATION_KEYWORDS = [
    ("lisinopril", ["Lisinopril 10mg daily"]),
    ("azithromycin", ["Azithromycin 500mg daily x5 days"]),
    ("ibuprofen", ["Ibuprofen 600mg q6h PRN pain"]),
    ("multivitamin", ["Multivitamin daily", "Omega-3 supplement daily"]),
]

MEDICAL_TERMS: Dict[str, List[str]] = {
    "medication": [
        "lisinopril", "azithromycin", "ibuprofen", "aspirin",
        "metformin", "atorvastatin", "omeprazole", "amoxicillin",
    ],
    "diagnosis": [
        "hypertension", "diabetes", "pneumonia", "chest pain",
        "covid-19", "influenza", "bronchitis", "asthma",
    ],
    "symptom": [
        "pain", "fever", "cough", "fatigue",
        "shortness of breath", "nausea", "headache", "dizziness",
    ],
    "procedure": [
        "ekg", "chest x-ray", "blood test", "physical examination",
        "mammogram", "colonoscopy",
    ],
}

ENTITY_CONFIDENCE = {
    "medication": 0.9,
    "diagnosis": 0.85,
    "symptom": 0.8,
    "procedure": 0.8,
}


def soap_sections(transcript: str) -> Dict[str, str]:
    """The four template SOAP sections for a transcript"""
    return dict(SOAP_TEMPLATES[classify(transcript)])


def extract_medications(transcript: str) -> List[str]:
    text = transcript.lower()
    medications: List[str] = []
    for keyword, entries in MEDICATION_KEYWORDS:
        if keyword in text:
            medications.extend(entries)
    return medications


def extract_diagnoses(transcript: str) -> List[Dict[str, str]]:
    text = transcript.lower()
    if "chest pain" in text:
        return [
            {"code": "R07.9", "description": "Chest pain, unspecified", "type": "primary"},
            {"code": "I10", "description": "Essential hypertension", "type": "secondary"},
        ]
    if "pneumonia" in text:
        return [{"code": "J18.9", "description": "Pneumonia, unspecified organism", "type": "primary"}]
    return [{
        "code": "Z00.00",
        "description": "Encounter for general adult medical examination without abnormal findings",
        "type": "primary",
    }]


def extract_recommendations(transcript: str) -> List[str]:
    return list(RECOMMENDATIONS[classify(transcript)])


def extract_follow_up(transcript: str) -> str:
    return FOLLOW_UP[classify(transcript)]


def extract_entities(*texts: str) -> List[Dict[str, object]]:
    """Vocabulary matches across the given texts, one entry per term"""
    haystack = " ".join(texts).lower()
    entities = []
    for entity_type, terms in MEDICAL_TERMS.items():
        for term in terms:
            if term in haystack:
                entities.append({
                    "entity": term,
                    "type": entity_type,
                    "confidence": ENTITY_CONFIDENCE[entity_type],
                })
    return entities
