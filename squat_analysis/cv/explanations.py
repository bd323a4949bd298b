"""Static coaching explanations attached to feedback for display."""

from squat_analysis.cv.feedback import ExplanationBundle, FeedbackItem, FeedbackKind

TORSO_INSTABILITY_MARKER = "Inconsistent"

TORSO_CAUSES = (
    "Can be caused by core weakness, poor motor control, limited hip or ankle mobility "
    "forcing compensation, or trying to lift too much weight."
)
TORSO_SUGGESTIONS = """Suggestions:
• Core Strengthening: Incorporate exercises like planks, dead bugs, or bird-dogs to improve core stability.
• Focus on Bracing: Before squatting, take a deep breath and brace your core muscles. Maintain this brace.
• Check Mobility: Ensure adequate hip and ankle mobility.
• Tempo Squats: Squat slowly (e.g., 3 seconds down, 3 seconds up) with lighter weight to focus on maintaining a consistent torso angle."""

TORSO_LEAN = ExplanationBundle(
    explanation=(
        "Your torso leaned forward excessively, particularly at the bottom of the squat. "
        "While some lean is normal, too much can shift stress to the lower back."
    ),
    causes=TORSO_CAUSES,
    suggestions=TORSO_SUGGESTIONS,
)

TORSO_INSTABILITY = ExplanationBundle(
    explanation=(
        "Your torso angle changed significantly during the movement, suggesting potential "
        "rounding or arching of the back rather than maintaining a stable, neutral spine."
    ),
    causes=TORSO_CAUSES,
    suggestions=TORSO_SUGGESTIONS,
)

EXPLANATIONS = {
    FeedbackKind.DEPTH: ExplanationBundle(
        explanation=(
            "Your squat didn't reach full depth, typically defined as the hip crease "
            "going below the top of the kneecap."
        ),
        causes=(
            "Common causes include limited ankle mobility (dorsiflexion), tight hips, or "
            "insufficient strength/control in the deep squat position."
        ),
        suggestions="""Suggestions:
• Ankle Mobility: Practice wall ankle stretches (keep heel down, drive knee towards wall) or calf stretches.
• Deep Squat Holds: Hold the bottom of a bodyweight squat (use support if needed) for 20-30 seconds to improve comfort.
• Goblet Squats: Holding a weight at your chest can act as a counterbalance, often making it easier to achieve depth.""",
    ),
    FeedbackKind.KNEE_VALGUS: ExplanationBundle(
        explanation=(
            "Your knees moved inward (caved in) during the squat, known as knee valgus. "
            "This can place unwanted stress on knee ligaments."
        ),
        causes=(
            "Often related to weak outer hip muscles (gluteus medius/minimus), overactive inner "
            "thigh muscles (adductors), or sometimes poor ankle stability/mobility."
        ),
        suggestions="""Suggestions:
• Banded Squats: Place a light resistance band just above knees. Focus on pushing knees out against the band throughout the squat.
• Clamshells: Lie on your side, knees bent, band above knees. Keep feet together and lift top knee against band. (2-3 sets of 15-20 reps)
• Lateral Band Walks: With band above knees or around ankles, take side steps maintaining tension and keeping knees pushed out slightly.""",
    ),
    FeedbackKind.HEEL_LIFT: ExplanationBundle(
        explanation=(
            "Your heels lifted off the ground during the squat. Maintaining ground contact "
            "is crucial for stability and proper force transfer."
        ),
        causes=(
            "Most commonly caused by limited ankle dorsiflexion. Can also be due to stance "
            "being too narrow or weight shifting too far forward."
        ),
        suggestions="""Suggestions:
• Ankle Mobility: Prioritize ankle stretches like the wall ankle stretch or calf stretches.
• Weightlifting Shoes: Shoes with an elevated heel can help compensate temporarily.
• Focus on Mid-foot Pressure: Consciously think about keeping pressure distributed across your whole foot.
• Wider Stance: Experimenting with a slightly wider stance might help.""",
    ),
    FeedbackKind.ASCENT_RATE: ExplanationBundle(
        explanation=(
            "Your hips rose significantly faster than your chest and shoulders as you stood "
            "up from the bottom of the squat."
        ),
        causes=(
            "Often indicates weak quadriceps relative to posterior chain (glutes/hamstrings), "
            "poor core bracing, or incorrect motor pattern."
        ),
        suggestions="""Suggestions:
• Cue 'Chest Up': Actively think about driving your chest/shoulders up simultaneously with your hips.
• Paused Squats: Pause for 1-2 seconds at the very bottom of the squat before ascending.
• Tempo Squats: Use a controlled tempo on the way up (e.g., 2-3 seconds).
• Strengthen Quads: Exercises like front squats or leg presses can help.""",
    ),
    FeedbackKind.DETECTION_QUALITY: ExplanationBundle(
        explanation="The analysis may be less reliable due to issues detecting body landmarks.",
        causes=(
            "Poor lighting, clothing obscuring joints, camera angle cutting off parts of the "
            "body, or video quality."
        ),
        suggestions="""Suggestions for Better Analysis:
• Ensure good, even lighting (avoid backlighting).
• Wear clothing that contrasts with the background and doesn't obscure joints.
• Film from a side or 45-degree angle, ensuring your full body is visible.
• Use a stable camera position.""",
    ),
    FeedbackKind.POSITIVE: ExplanationBundle(
        explanation=(
            "Based on the analyzed metrics, your squat form appears generally good in the "
            "key areas checked."
        ),
        causes="N/A",
        suggestions=(
            "Keep practicing good form! Consider exploring variations or gradually increasing "
            "weight if appropriate for your goals."
        ),
    ),
}


def explain(item: FeedbackItem) -> FeedbackItem:
    """Return a copy of the item with its explanation bundle attached."""
    if item.kind == FeedbackKind.TORSO_ANGLE:
        if TORSO_INSTABILITY_MARKER in item.message:
            return item.with_detail(TORSO_INSTABILITY)
        return item.with_detail(TORSO_LEAN)
    return item.with_detail(EXPLANATIONS[item.kind])
