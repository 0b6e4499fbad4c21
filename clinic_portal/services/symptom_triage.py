"""Rule-based symptom triage.

Matches free text against admin-curated symptom scopes, derives an urgency
level and builds a structured advisory report. Nothing here touches the
database; the persistence side lives in ``symptom_check_service``.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from clinic_portal.core.exceptions import ValidationException
from clinic_portal.schemas.symptoms import (
    ReportSection,
    SymptomCategory,
    SymptomCheckRequest,
    SymptomScope,
    UrgencyLevel,
)

CRITICAL_PHRASES = (
    "heart attack",
    "cardiac arrest",
    "stroke",
    "seizure",
    "unconscious",
    "not breathing",
    "can't breathe",
    "cannot breathe",
    "severe bleeding",
    "heavy bleeding",
    "suicide",
    "suicidal",
    "overdose",
    "poisoning",
    "chest crushing",
    "crushing chest pain",
)

CONDITIONS_PER_SCOPE = 3
MAX_REPORTED_CONDITIONS = 5
MAX_WARNING_SIGNS = 6
MAX_PRIMARY_SPECIALISTS = 2

DEFAULT_CONDITION_DESCRIPTION = "A medical condition that requires professional evaluation"

CONDITION_DESCRIPTIONS = {
    "Common Cold": "A viral infection of the upper respiratory tract causing congestion, runny nose, and mild fever",
    "Bronchitis": "Inflammation of the bronchial tubes causing persistent cough and chest discomfort",
    "Pneumonia": "Lung infection causing fever, cough, and difficulty breathing; requires medical attention",
    "Asthma": "Chronic respiratory condition causing wheezing, shortness of breath, and chest tightness",
    "Tension Headache": "Most common headache type causing band-like pressure around the head",
    "Migraine": "Severe headache often with nausea, light sensitivity, and visual disturbances",
    "Cluster Headache": "Intense headache episodes occurring in clusters over weeks or months",
    "Viral Infection": "Illness caused by a virus, often causing fever, fatigue, and body aches",
    "Bacterial Infection": "Illness caused by bacteria that may require antibiotic treatment",
    "UTI": "Urinary tract infection causing painful urination, frequent urge to urinate, and possible fever",
    "Flu": "Influenza virus causing high fever, severe body aches, fatigue, and respiratory symptoms",
    "COVID-19": "Coronavirus infection with symptoms ranging from mild cold-like to severe respiratory distress",
    "Gastroenteritis": "Stomach and intestinal inflammation causing nausea, vomiting, and diarrhea",
    "Food Poisoning": "Illness from contaminated food causing rapid onset nausea, vomiting, and diarrhea",
    "Sinusitis": "Sinus inflammation causing facial pain, pressure, and nasal congestion",
    "Allergies": "Immune system reaction causing sneezing, itching, runny nose, and watery eyes",
    "GERD": "Acid reflux causing heartburn, chest discomfort, and throat irritation",
    "Dehydration": "Insufficient fluid intake causing fatigue, dizziness, and dry mouth",
    "Anemia": "Low red blood cell count causing fatigue, weakness, and pale skin",
    "Hypothyroidism": "Underactive thyroid causing fatigue, weight gain, and cold sensitivity",
    "Sleep Disorder": "Disrupted sleep patterns affecting energy levels and daily functioning",
    "Strep Throat": "Bacterial throat infection requiring antibiotics, causing severe sore throat and fever",
    "Tonsillitis": "Inflamed tonsils causing severe throat pain, difficulty swallowing, and fever",
    "IBS": "Irritable bowel syndrome causing abdominal pain, bloating, and irregular bowel movements",
    "Vertigo": "Spinning sensation and balance problems, often from inner ear issues",
    "Low Blood Pressure": "Hypotension causing dizziness, lightheadedness, and possible fainting",
    "Muscle Strain": "Overstretched or torn muscle causing pain and limited movement",
    "Angina": "Chest pain from reduced blood flow to the heart muscle",
    "Heart Attack": "Life-threatening blockage of blood flow to the heart; requires immediate emergency care",
    "Costochondritis": "Inflammation of chest wall cartilage causing localized chest pain",
    "Anxiety": "Mental health condition causing excessive worry, tension, and physical symptoms",
    "Pericarditis": "Inflammation of the protective sac around the heart",
    "COPD": "Chronic obstructive pulmonary disease affecting breathing and lung function",
    "Arrhythmia": "Irregular heartbeat that may require medical evaluation",
    "Epilepsy": "Neurological disorder causing recurrent seizures",
    "Appendicitis": "Inflammation of the appendix requiring urgent surgical evaluation",
    "Gastritis": "Stomach lining inflammation causing pain and nausea",
    "Gallstones": "Hardened deposits in the gallbladder causing pain",
    "Ulcer": "Sore in stomach or intestinal lining causing pain and bleeding",
    "Herniated Disc": "Spinal disc problem causing back or neck pain and nerve symptoms",
    "Sciatica": "Nerve pain radiating from lower back down the leg",
    "Arthritis": "Joint inflammation causing pain, stiffness, and swelling",
    "Gout": "Sudden, severe joint pain from uric acid crystal buildup",
    "Eczema": "Skin condition causing itchy, inflamed patches",
    "Psoriasis": "Autoimmune skin condition causing scaly patches",
    "Cellulitis": "Bacterial skin infection requiring antibiotic treatment",
    "Mononucleosis": "Viral infection causing severe fatigue and sore throat",
    "Diabetes": "Metabolic disorder affecting blood sugar regulation",
    "Sleep Apnea": "Sleep disorder with breathing interruptions",
}

BASE_SELF_CARE = (
    "Rest: Get adequate sleep (7-9 hours per night) to help your body recover",
    "Hydration: Drink plenty of fluids such as water, warm tea, clear soup, or electrolyte drinks",
)
FEVER_SELF_CARE = (
    "Fever Management: Take paracetamol (acetaminophen) or ibuprofen as directed "
    "for temperature above 38.5°C (101°F)",
    "Cool Compress: Apply a cool, damp cloth to forehead and neck to reduce fever",
)
RESPIRATORY_SELF_CARE = (
    "Respiratory Relief: Use throat lozenges, honey (if over 1 year old), steam "
    "inhalation, or saline nasal spray",
    "Humidity: Use a humidifier or breathe steam from a hot shower to ease congestion",
)
DIGESTIVE_SELF_CARE = (
    "Bland Diet: Stick to easily digestible foods like rice, bananas, toast, and clear broths",
    "Small Meals: Eat small, frequent meals rather than large portions",
)
CLOSING_SELF_CARE = (
    "Nutrition: Maintain a balanced diet even if appetite is reduced",
    "Monitor: Keep track of temperature, symptoms, and overall condition",
    "Avoid: Skip smoking, alcohol, and strenuous activities until fully recovered",
)

GENERAL_WARNING_SIGNS = (
    "Fever above 39°C (102°F) lasting more than 3 days",
    "Symptoms persist or worsen after 7-10 days",
    "Difficulty breathing or chest pain develops",
    "Persistent vomiting or inability to keep fluids down",
    "Signs of dehydration (decreased urination, extreme thirst, dizziness)",
    "Severe or worsening pain",
)

URGENCY_ASSESSMENTS = {
    UrgencyLevel.EMERGENCY: (
        "EMERGENCY: immediate action required. Call 999 or visit the nearest "
        "Emergency Room immediately. Do not wait or try to drive yourself if "
        "symptoms are severe."
    ),
    UrgencyLevel.URGENT: (
        "URGENT: seek medical attention soon. You should see a doctor within "
        "24-48 hours. Contact your healthcare provider today or visit an urgent "
        "care clinic."
    ),
    UrgencyLevel.ROUTINE: (
        "ROUTINE care recommended. Schedule an appointment with your doctor during "
        "normal office hours. Continue self-care measures in the meantime."
    ),
}

DISCLAIMER = (
    "This assessment is for informational purposes only and does not constitute "
    "medical advice. It should not replace consultation with a qualified healthcare "
    "professional. If you have concerns about your health, please contact your doctor."
)


def phrase_pattern(phrase: str) -> re.Pattern[str]:
    """Whole-word, case-insensitive pattern for a literal phrase."""
    return re.compile(r"\b" + re.escape(phrase.strip().lower()) + r"\b", re.IGNORECASE)


def _dedupe(values: Iterable[str]) -> list[str]:
    seen: dict[str, None] = {}
    for value in values:
        value = value.strip()
        if value and value not in seen:
            seen[value] = None
    return list(seen)


@dataclass
class MatchedCondition:
    """A possible condition and the detected symptoms pointing to it."""

    name: str
    symptoms: list[str] = field(default_factory=list)


@dataclass
class TriageResult:
    """Outcome of one triage evaluation."""

    urgency: UrgencyLevel
    detected: list[SymptomScope]
    conditions: list[MatchedCondition]
    specializations: list[str]
    critical: bool
    sections: list[ReportSection]

    @property
    def matched_symptom_names(self) -> list[str]:
        return [scope.symptom_name for scope in self.detected]


class TriageEngine:
    """Deterministic matcher over symptom scopes."""

    def __init__(self, critical_phrases: Iterable[str] = CRITICAL_PHRASES):
        self._critical = [phrase_pattern(p) for p in critical_phrases]

    @staticmethod
    def haystack(request: SymptomCheckRequest) -> str:
        """Lowercased text searched for symptoms, warnings and critical phrases."""
        parts = (request.symptoms, request.additional_info or "", request.duration or "")
        return " ".join(parts).lower()

    def is_critical(self, text: str) -> bool:
        return any(pattern.search(text) for pattern in self._critical)

    def evaluate(
        self,
        scopes: Iterable[SymptomScope],
        request: SymptomCheckRequest,
    ) -> TriageResult:
        """
        Triage a symptom description.

        Args:
            scopes: Candidate scopes; inactive ones are skipped
            request: Patient's symptom description

        Returns:
            Urgency, detected scopes and the structured report

        Raises:
            ValidationException: If no symptoms were described
        """
        if not (request.symptoms or "").strip():
            raise ValidationException("Please describe your symptoms")

        text = self.haystack(request)
        urgency = UrgencyLevel.ROUTINE
        detected: list[SymptomScope] = []
        conditions: dict[str, MatchedCondition] = {}
        specializations: list[str] = []

        for scope in scopes:
            name = scope.symptom_name.strip()
            if not scope.is_active or not name:
                continue
            if not phrase_pattern(name).search(text):
                continue

            scope_urgency = scope.urgency_level
            if scope_urgency.rank < UrgencyLevel.URGENT.rank and any(
                phrase_pattern(keyword).search(text) for keyword in scope.keyword_list
            ):
                scope_urgency = UrgencyLevel.URGENT
            if scope_urgency.rank > urgency.rank:
                urgency = scope_urgency

            detected.append(scope)
            for condition in scope.condition_list[:CONDITIONS_PER_SCOPE]:
                matched = conditions.setdefault(condition, MatchedCondition(condition))
                if scope.symptom_name not in matched.symptoms:
                    matched.symptoms.append(scope.symptom_name)
            if scope.recommended_specialization:
                specializations.append(scope.recommended_specialization)

        critical = self.is_critical(text)
        if critical:
            urgency = UrgencyLevel.EMERGENCY

        specializations = _dedupe(specializations)
        condition_list = list(conditions.values())

        return TriageResult(
            urgency=urgency,
            detected=detected,
            conditions=condition_list,
            specializations=specializations,
            critical=critical,
            sections=build_report(condition_list, urgency, detected, specializations),
        )


def build_report(
    conditions: list[MatchedCondition],
    urgency: UrgencyLevel,
    detected: list[SymptomScope],
    specializations: list[str],
) -> list[ReportSection]:
    """Assemble the ordered report sections."""
    return [
        _diagnosis_section(conditions),
        _self_care_section(detected),
        _warning_section(detected, urgency),
        ReportSection(heading="Urgency Assessment", body=URGENCY_ASSESSMENTS[urgency]),
        _provider_section(urgency, specializations),
        ReportSection(heading="Important Medical Disclaimer", body=DISCLAIMER),
    ]


def _diagnosis_section(conditions: list[MatchedCondition]) -> ReportSection:
    if not conditions:
        return ReportSection(
            heading="Possible Diagnosis",
            body=(
                "Your symptoms do not closely match our diagnostic database. We recommend "
                "consulting a healthcare provider for proper evaluation."
            ),
        )

    items = []
    for condition in conditions[:MAX_REPORTED_CONDITIONS]:
        description = CONDITION_DESCRIPTIONS.get(condition.name, DEFAULT_CONDITION_DESCRIPTION)
        item = f"{condition.name}: {description}"
        if condition.symptoms:
            item += f" (Related to your symptoms: {', '.join(condition.symptoms)})"
        items.append(item)

    return ReportSection(
        heading="Possible Diagnosis",
        body="Based on your symptoms, you may be experiencing:",
        items=items,
    )


def _self_care_section(detected: list[SymptomScope]) -> ReportSection:
    names = [scope.symptom_name.lower() for scope in detected]
    categories = {scope.category for scope in detected}

    has_fever = any("fever" in name for name in names)
    has_respiratory = (
        any("cough" in name for name in names) or SymptomCategory.RESPIRATORY in categories
    )
    has_digestive = SymptomCategory.GASTROINTESTINAL in categories

    items = list(BASE_SELF_CARE)
    if has_fever:
        items.extend(FEVER_SELF_CARE)
    if has_respiratory:
        items.extend(RESPIRATORY_SELF_CARE)
    if has_digestive:
        items.extend(DIGESTIVE_SELF_CARE)
    items.extend(CLOSING_SELF_CARE)
    items.extend(_dedupe(scope.guidance for scope in detected if scope.guidance))

    return ReportSection(heading="Self-Care Recommendations", items=items)


def _warning_section(detected: list[SymptomScope], urgency: UrgencyLevel) -> ReportSection:
    keywords = _dedupe(kw for scope in detected for kw in scope.keyword_list)
    items = [kw[:1].upper() + kw[1:] for kw in keywords[:MAX_WARNING_SIGNS]]

    if urgency == UrgencyLevel.ROUTINE:
        items.extend(GENERAL_WARNING_SIGNS)

    body = (
        "Seek medical care if you experience:"
        if keywords
        else "General warning signs requiring medical evaluation:"
    )
    return ReportSection(heading="When to Seek Medical Attention", body=body, items=items)


def _provider_section(urgency: UrgencyLevel, specializations: list[str]) -> ReportSection:
    heading = "Recommended Healthcare Provider"
    if not specializations:
        return ReportSection(heading=heading, items=["General Practitioner or Family Doctor"])

    primary = specializations[:MAX_PRIMARY_SPECIALISTS]
    if urgency == UrgencyLevel.EMERGENCY:
        return ReportSection(
            heading=heading,
            body="First: Go to the Emergency Room immediately. Follow-up with:",
            items=primary,
        )

    alternatives = specializations[MAX_PRIMARY_SPECIALISTS:]
    body = "Recommended appointment with:"
    if alternatives:
        body += f" (Alternative specialists: {', '.join(alternatives)})"
    return ReportSection(heading=heading, body=body, items=primary)


def render_markdown(sections: Iterable[ReportSection]) -> str:
    """Render report sections as Markdown."""
    lines = ["# Symptom Analysis Results", ""]
    for section in sections:
        lines.extend([f"## {section.heading}", ""])
        if section.body:
            lines.extend([section.body, ""])
        if section.items:
            lines.extend(f"* {item}" for item in section.items)
            lines.append("")
    return "\n".join(lines)
