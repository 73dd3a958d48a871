"""Step catalog for the home electrical site survey."""

from site_survey.domain.steps import (
    CaptureStep,
    EntryDataType,
    GuideStep,
    ManualEntryStep,
    PromptConfig,
    StepCatalog,
    ValueRule,
)

_LABEL_FIELDS = {
    "lra": "LRA (Locked Rotor Amperage) - look for 'LRA' followed by a number and 'A'",
    "rla": "RLA (Rated Load Amperage) - look for 'RLA' followed by a number and 'A'",
    "voltage": "Voltage ratings - look for voltage values like '240V', '480V', etc.",
    "frequency": "Frequency - look for 'Hz' values like '60Hz', '50Hz'",
    "power": "Power ratings - look for 'HP' values like '5HP', '10HP'",
    "model": "Model number from equipment labels",
    "manufacturer": "Manufacturer name from equipment labels",
}

_LABEL_PROMPT = (
    "Does the image contain a metallic or paper label with printed technical "
    "specifications? Is the label the primary subject of the photo? "
    "Does the label look like it's from an A/C unit?"
)

_AMPERAGE_FIELDS = {"amperage": "Amperage - look for 'A' followed by a number"}

SURVEY_STEPS = (
    GuideStep(
        id=0.5,
        title="Let's Start Outside",
        description="Guide to electricity meter location",
        instructions=(
            "First, we'll take photos of your electricity meter and the "
            "surrounding area. Please walk to the outside wall of your home "
            "where your electricity meter is located."
        ),
        button_text="I'm at the Meter",
        tip=(
            "Your electricity meter is usually mounted on an exterior wall and "
            "may be near other utility connections."
        ),
    ),
    CaptureStep(
        id=1,
        title="Electricity Meter Close-up",
        description="Capture a detailed photo of your electricity meter",
        instructions=(
            "Let's start with your electricity meter. Please get close enough "
            "so the numbers on it are clear and legible."
        ),
        tips=(
            "Get within 2-3 feet of the meter",
            "Ensure good lighting on the meter face",
            "Hold your device steady to avoid blur",
        ),
        prompt_config=PromptConfig(
            prompt=(
                "Does the image contain an object that is identifiable as an "
                "electricity meter (circular or rectangular, with a glass/plastic "
                "cover and visible dials or digital display)? Is the image sharp "
                "and not blurry? Is the meter the primary subject, filling a "
                "significant portion of the frame?"
            ),
            structured_fields={
                "model": "Model number from equipment labels",
                "manufacturer": "Manufacturer name from equipment labels",
                "serial": "Serial number from equipment labels",
                "voltage": _LABEL_FIELDS["voltage"],
            },
        ),
    ),
    CaptureStep(
        id=2,
        title="Area Around Meter (Wide Shot)",
        description="Capture a wide view showing the meter and surrounding area",
        instructions=(
            "Now, please take about 10 steps back from the wall and take a wide "
            "photo showing the entire area around the meter."
        ),
        tips=(
            "Include the ground, wall, and meter in frame",
            "Show any potential obstructions like windows, doors, or utility boxes",
        ),
        prompt_config=PromptConfig(
            prompt=(
                "Is there an electric meter visible within a wider shot of a "
                "building's exterior wall? Does the image show the ground, the "
                "wall, or any potential obstructions near the meter?"
            ),
        ),
    ),
    CaptureStep(
        id=3,
        title="Area to the RIGHT of Meter",
        description="Capture the wall and space to the right of the meter",
        instructions=(
            "Staying where you are, please pan your camera to the right and "
            "capture the wall and any open space next to the meter."
        ),
        prompt_config=PromptConfig(
            prompt=(
                "Does the image show an exterior wall and adjacent ground space? "
                "Does it capture the area to the right side of where the meter "
                "would be located?"
            ),
        ),
    ),
    CaptureStep(
        id=4,
        title="Area to the LEFT of Meter",
        description="Capture the wall and space to the left of the meter",
        instructions=(
            "Great. Now, please pan to the left and capture the wall and space "
            "on the other side of the meter."
        ),
        prompt_config=PromptConfig(
            prompt=(
                "Does the image show an exterior wall and adjacent ground space? "
                "Does it capture the area to the left side of where the meter "
                "would be located?"
            ),
        ),
    ),
    CaptureStep(
        id=5,
        title="Adjacent Wall / Side Yard",
        description="Show the entire side wall of the house",
        instructions=(
            "Let's see the whole side of the house. Please take a photo from "
            "corner to corner to show the entire wall."
        ),
        prompt_config=PromptConfig(
            prompt=(
                "Does the image show a long expanse of an exterior wall, maybe "
                "including a corner of the house? Is the full side wall visible "
                "with at least a corner?"
            ),
        ),
    ),
    CaptureStep(
        id=6,
        title="Area Behind Fence (Conditional)",
        description="Show the space behind any fence if present",
        instructions=(
            "If there is a fence on this side of the house, please take a photo "
            "of the area behind it."
        ),
        prompt_config=PromptConfig(
            prompt=(
                "Does the image contain a fence? Does the image show the space "
                "between the fence and the house wall?"
            ),
        ),
    ),
    GuideStep(
        id=6.5,
        title="Now Find Your A/C Units",
        description="Guide to air conditioning units",
        instructions=(
            "Next, we need to capture photos of your air conditioning unit "
            "labels. Please walk to your outdoor air conditioning unit(s)."
        ),
        button_text="I'm at My A/C Unit",
        tip="Look for the large metal box with a fan on top.",
    ),
    CaptureStep(
        id=7,
        title="A/C Unit Label",
        description="Capture the technical label on your A/C unit",
        instructions=(
            "Please find the label on your A/C unit. We need a clear, close-up "
            "photo where the 'LRA' number is readable."
        ),
        tips=(
            "Get close enough to read technical specifications",
            "Look specifically for LRA or RLA numbers",
        ),
        prompt_config=PromptConfig(
            prompt=_LABEL_PROMPT, structured_fields=dict(_LABEL_FIELDS)
        ),
    ),
    CaptureStep(
        id=8,
        title="Second A/C Unit Label (Conditional)",
        description="Capture the label on your second A/C unit if present",
        instructions=(
            "If you have a second A/C unit, please take a photo of its label as "
            "well. If not, you can skip this."
        ),
        skippable=True,
        prompt_config=PromptConfig(
            prompt=_LABEL_PROMPT, structured_fields=dict(_LABEL_FIELDS)
        ),
    ),
    GuideStep(
        id=8.5,
        title="Find Your Electrical Panel",
        description="Guide to main electrical panel",
        instructions=(
            "Finally, we need to take photos of your main electrical panel "
            "(breaker box). Please go inside your home and locate it. This is "
            "usually found in a garage, basement, utility room, or closet."
        ),
        button_text="I Found the Electrical Panel",
        tip="Look for a gray metal box on the wall with a hinged door.",
    ),
    CaptureStep(
        id=9,
        title="Main Breaker Box (Panel Interior)",
        description="Capture the interior of your main electrical panel",
        instructions=(
            "Now, please find your main breaker box. Open the metal door and "
            "take a photo of all the switches inside."
        ),
        prompt_config=PromptConfig(
            prompt=(
                "Does the image show the inside of an electrical panel with "
                "multiple rows of breaker switches? Is the entire set of breakers "
                "visible? Can you identify individual circuit breakers?"
            ),
        ),
    ),
    CaptureStep(
        id=10,
        title="Main Disconnect Switch (Close-up)",
        description="Capture a close-up of the main disconnect switch",
        instructions=(
            "Find the main switch, which is usually the largest one at the top. "
            "We need a clear, close-up photo of it to see the number on the "
            "switch (e.g., 100, 150, or 200)."
        ),
        prompt_config=PromptConfig(
            prompt=(
                "Does the image focus on a single, larger breaker switch, often "
                "labeled 'Main'? Is there a number (e.g., 100, 125, 150, 200) "
                "visible and readable on or near the switch? Is this clearly the "
                "main disconnect switch?"
            ),
            structured_fields=dict(_AMPERAGE_FIELDS),
        ),
    ),
    ManualEntryStep(
        id=11,
        title="Confirm Main Disconnect Amperage",
        description="AI will read the amperage from the main switch photo",
        instructions=(
            "The AI is analyzing your main switch photo to read the amperage "
            "number. Please confirm if the reading is correct."
        ),
        related_step_id=10,
        prompt_config=PromptConfig(
            prompt=(
                "Read and extract the amperage number (e.g., 100, 125, 150, 200) "
                "from the main disconnect switch in this image. Return ONLY the "
                "numeric value followed by 'A' (e.g., '200A') if clearly visible. "
                "If you cannot read the number clearly, respond with "
                "'Unable to read amperage'."
            ),
            structured_fields=dict(_AMPERAGE_FIELDS),
        ),
        data_type=EntryDataType.AMPERAGE,
        placeholder="Enter amperage (e.g., 200)",
        rule=ValueRule(min=50, max=400, pattern=r"[0-9]+"),
    ),
    CaptureStep(
        id=12,
        title="Area Around Main Breaker Box",
        description="Show the location and context of the breaker box",
        instructions=(
            "Finally, please take a wide photo showing the area around the "
            "breaker box so we can see its location and any nearby obstructions."
        ),
        prompt_config=PromptConfig(
            prompt=(
                "Is the breaker box visible within a larger context (e.g., on a "
                "garage wall, in a closet, utility room)? Does the image show the "
                "surrounding area and any potential obstructions or nearby "
                "equipment?"
            ),
        ),
    ),
)


def default_catalog() -> StepCatalog:
    """Build the catalog used by the application."""
    return StepCatalog(SURVEY_STEPS)
