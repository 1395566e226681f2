"""Stage metadata and treatment protocols for Cercospora leaf spot on kangkung.

The table is built once at import time and never mutated. ``lookup`` is the
only accessor the engine uses; it never fails and falls back to the N0 entry
for codes it does not recognize.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Tuple, Union

from core.utils import DiseaseStage


@dataclass(frozen=True)
class TreatmentProtocol:
    """Action lists by category. Empty categories do not apply to the stage."""
    immediate: Tuple[str, ...]
    preventive: Tuple[str, ...] = ()
    cultural: Tuple[str, ...] = ()
    chemical: Tuple[str, ...] = ()
    nutritional: Tuple[str, ...] = ()
    recovery: Tuple[str, ...] = ()
    photography_tips: Tuple[str, ...] = ()
    tips: Tuple[str, ...] = ()

    CATEGORIES = (
        "immediate", "preventive", "cultural", "chemical",
        "nutritional", "recovery", "photography_tips", "tips",
    )

    def categories(self) -> Tuple[Tuple[str, Tuple[str, ...]], ...]:
        """(category, actions) pairs for the categories present, in display order."""
        return tuple(
            (name, getattr(self, name))
            for name in self.CATEGORIES
            if getattr(self, name)
        )


@dataclass(frozen=True)
class DiseaseInfo:
    """Descriptive metadata for one disease stage."""
    stage: DiseaseStage
    name: str
    severity: int
    description: str
    symptoms: Tuple[str, ...]
    biological_interpretation: str
    visual_description: str
    treatment: TreatmentProtocol
    lesion_size_range: str = ""
    prognosis: str = ""


_ENTRIES = (
    DiseaseInfo(
        stage=DiseaseStage.HEALTHY,
        name="Healthy Plant",
        severity=0,
        description="Fully green leaf with no visible lesions or disease symptoms.",
        symptoms=(
            "Vibrant green leaves",
            "Stems firm and upright",
            "No spots, wilting or discoloration",
            "Uniform growth pattern",
            "Healthy leaf texture",
        ),
        biological_interpretation=(
            "Strong physiological activity with optimal photosynthesis. "
            "Baseline class for comparison."
        ),
        visual_description="Fully green leaf, no lesions",
        treatment=TreatmentProtocol(
            immediate=(
                "Continue current care practices",
                "Monitor regularly for any changes",
            ),
            preventive=(
                "Maintain proper spacing (15-20cm) for good airflow",
                "Water at the base to keep leaves dry",
                "Remove any plant debris daily",
                "Practice crop rotation (avoid same location for 3 months)",
            ),
            cultural=(
                "Ensure adequate sunlight (6-8 hours)",
                "Maintain consistent watering schedule",
                "Use well-draining soil",
            ),
        ),
    ),
    DiseaseInfo(
        stage=DiseaseStage.EARLY,
        name="Early Infection (Cercospora Leaf Spot)",
        severity=1,
        description="Initial fungal penetration with 1-3mm purple/brown dots and yellow halos.",
        symptoms=(
            "Small purple/brown dots (1-3mm diameter)",
            "Yellow halo around each lesion",
            "Light green patches on leaves",
            "Leaf edges may curl slightly",
            "Tips slightly pale",
            "Growth slower than usual",
            "Slight leaf drop in hot periods",
        ),
        biological_interpretation=(
            "Initial fungal penetration through leaf stomata. "
            "Fungal spores germinating on moist leaf surfaces."
        ),
        visual_description="1-3mm purple/brown dots with yellow halo",
        lesion_size_range="1-3mm",
        treatment=TreatmentProtocol(
            immediate=(
                "Remove affected leaves immediately (cut at stem)",
                "Isolate plant if in group setting (2m distance)",
                "Reduce overhead watering completely",
                "Improve air circulation around plants",
            ),
            chemical=(
                "Apply Chlorothalonil fungicide (500ppm solution)",
                "Alternative: Copper-based fungicide (1% solution)",
                "Spray in early morning (6-8am) or evening (5-7pm)",
                "Repeat application every 7-10 days",
                "Ensure thorough coverage of leaf surfaces",
            ),
            cultural=(
                "Water only at base of plant (avoid leaf wetting)",
                "Increase spacing between plants to 20-25cm",
                "Remove lower leaves touching soil",
                "Avoid working with plants when wet",
                "Ensure proper drainage",
            ),
            preventive=(
                "Apply preventive fungicide spray weekly",
                "Improve drainage around plants",
                "Ensure 6+ hours of direct sunlight",
            ),
        ),
        prognosis=(
            "Excellent recovery rate (>90%) if treated within 3-5 days. "
            "Plant can return to full health."
        ),
    ),
    DiseaseInfo(
        stage=DiseaseStage.MID,
        name="Mid Infection (Cercospora Leaf Spot)",
        severity=2,
        description="Sporulation phase with expanding lesions (5-12mm), turning brown-grey.",
        symptoms=(
            "Lesions expand to 5-12mm diameter",
            "Color changes from purple to brown-grey",
            "Yellowing on older leaves (chlorosis)",
            "Turgor loss on leaves",
            "Wilting that doesn't recover after watering",
            "Edges turn brown and brittle",
            "Stems become thin or weak",
            "Stunted growth (50% slower)",
            "Multiple lesions per leaf (3-8)",
        ),
        biological_interpretation=(
            "Sporulation begins. Fungus spreading through leaf tissue, disrupting "
            "chlorophyll production and water transport."
        ),
        visual_description="Lesions expand (5-12mm), turn brown-grey",
        lesion_size_range="5-12mm",
        treatment=TreatmentProtocol(
            immediate=(
                "Remove all infected leaves (up to 30% of plant)",
                "Dispose of removed leaves in sealed bag - do NOT compost",
                "Stop overhead watering completely",
                "Increase plant spacing to 25-30cm if possible",
            ),
            chemical=(
                "Apply systemic fungicide (Mancozeb 80% WP at 2g/L or Propiconazole 25% EC at 1ml/L)",
                "Alternate between two different fungicide classes to prevent resistance",
                "Spray every 5-7 days for 3 weeks minimum",
                "Ensure complete coverage including leaf undersides",
                "Use spreader-sticker for better adhesion",
            ),
            cultural=(
                "Water only in morning (6-9am) at soil level",
                "Remove all plant debris around base daily",
                "Improve soil drainage with sand/organic matter",
                "Add 5cm organic mulch to prevent splash-back",
                "Prune for better air circulation (remove dense foliage)",
            ),
            nutritional=(
                "Apply balanced fertilizer (NPK 15-15-15) to boost immunity",
                "Avoid high nitrogen fertilizers (>20% N)",
                "Consider potassium supplement (K2O) for disease resistance",
                "Foliar spray with calcium chloride (0.5%)",
            ),
        ),
        prognosis=(
            "Good recovery possible (60-70%) with aggressive treatment. Yield may be "
            "reduced by 15-30%. Treatment must be consistent."
        ),
    ),
    DiseaseInfo(
        stage=DiseaseStage.SEVERE,
        name="Late/Severe Infection (Cercospora Leaf Spot)",
        severity=3,
        description="Tissue death with large necrotic patches (>12mm), leaf yellowing, and defoliation.",
        symptoms=(
            "Large necrotic patches (>12mm, up to 30mm)",
            "Severe leaf yellowing throughout plant",
            "Significant defoliation (>40% leaf loss)",
            "Crispy brown edges, leaf curling",
            "Stems collapse or severe yellowing",
            "Multiple coalescing lesions per leaf (8+)",
            "Plant height stunted (<50% normal)",
            "Root may rot if overwatered",
            "Severe wilting even after watering",
            "Plant may not recover",
        ),
        biological_interpretation=(
            "Tissue death and chlorophyll collapse. Extensive fungal colonization has "
            "severely damaged the vascular system. Photosynthesis critically impaired."
        ),
        visual_description="Large necrotic patches (>12mm), leaf yellowing, defoliation",
        lesion_size_range=">12mm",
        treatment=TreatmentProtocol(
            immediate=(
                "Assess plant viability (if >70% affected, consider removal)",
                "Remove ALL diseased foliage (may be 50-80% of plant)",
                "If roots healthy and firm, cut back to healthy green tissue",
                "Isolate from other plants immediately (5m minimum)",
                "Disinfect all tools with 10% bleach solution after use",
            ),
            chemical=(
                "Apply high-strength systemic fungicide (Propiconazole 25% EC at 2ml/L)",
                "Soil drench with fungicide to treat root zone (100ml per plant)",
                "Spray every 5 days for immediate control (minimum 4 applications)",
                "May need 4-6 weekly applications for any recovery",
                "Consider tank-mixing compatible fungicides",
            ),
            cultural=(
                "Remove plant from growing area if recovery unlikely",
                "Do NOT compost diseased material - burn or dispose in sealed bag",
                "Sterilize all tools with 70% alcohol or 10% bleach",
                "Treat soil with fungicide or solarize before replanting",
                "Let area rest for 3-4 weeks before new planting",
                "Remove all fallen leaves and debris from surrounding area",
            ),
            recovery=(
                "If attempting recovery: provide optimal conditions (25-30°C, high light)",
                "Reduce watering to minimum (check soil moisture first)",
                "Support weak stems with bamboo stakes",
                "Monitor daily for improvement or further decline",
                "Apply foliar nutrients (liquid fertilizer at half strength)",
                "Expect 4-6 weeks for any visible improvement",
            ),
        ),
        prognosis=(
            "Poor. Recovery rate is low (20-30%). Yield loss typically 60-100%. "
            "Priority is preventing spread to healthy plants. Consider replanting."
        ),
    ),
    DiseaseInfo(
        stage=DiseaseStage.INVALID,
        name="Non-Disease / Image Quality Issue",
        severity=0,
        description=(
            "Image contains shadows, dirt, water droplets, or quality issues "
            "affecting accurate analysis."
        ),
        symptoms=(
            "Heavy shadows obscuring leaf details",
            "Unclear or blurry plant features",
            "Dirt, mud, or debris on leaf surface",
            "Water droplets causing reflections",
            "Insufficient or uneven lighting",
            "Leaf out of focus",
            "Too far from subject",
            "Motion blur present",
        ),
        biological_interpretation=(
            "Used for images that don't show clear disease symptoms or have quality "
            "issues. Separates imaging artifacts from actual disease."
        ),
        visual_description="Shadows, dirt, or poor image quality",
        treatment=TreatmentProtocol(
            immediate=(
                "Gently clean leaves with soft, dry cloth",
                "Remove water droplets before photographing",
                "Wait for direct sunlight or use diffused flash",
                "Position leaf against neutral background if possible",
            ),
            photography_tips=(
                "Take photos in natural daylight (10am-3pm for best results)",
                "Hold camera steady or use tripod to avoid blur",
                "Focus directly on symptomatic areas or entire leaf",
                "Include entire lesion plus 2cm surrounding healthy tissue",
                "Keep camera 10-20cm from leaf for detail",
                "Avoid backlighting - position sun behind you",
                "Use macro mode if available on phone camera",
                "Take multiple photos from different angles",
            ),
            tips=(
                "Clean leaf surface gently before imaging",
                "Ensure no shadows fall on the leaf",
                "Use even, bright natural light",
                "Hold leaf flat if possible (support with paper)",
            ),
        ),
    ),
)

DISEASE_DATABASE = MappingProxyType({info.stage: info for info in _ENTRIES})


def lookup(stage: Union[DiseaseStage, str, None]) -> DiseaseInfo:
    """Get the DiseaseInfo for a stage or stage code. Unknown codes map to N0."""
    resolved = DiseaseStage.from_code(stage) if stage is not None else None
    return DISEASE_DATABASE.get(resolved, DISEASE_DATABASE[DiseaseStage.INVALID])
