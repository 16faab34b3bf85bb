from __future__ import annotations

from teacheraid.schemas.session import Message, SenderRole, Subject

DEMO_TEACHER_NAME = "Ms. Thompson"
DEMO_KINDS = ("esl", "neurodivergent")

_NEURODIVERGENT_GUIDE = """## Communication Style
Sam processes language literally. "Hop to it" might confuse him. He resists direct demands ("Do this now") due to PDA, which triggers anxiety.

## Engagement Tips
- Use declarative language ("The book is open") instead of imperatives ("Open the book").
- Offer choices to provide a sense of control.
- Incorporate his interest in trains/timetables to explain sequences."""

_ESL_GUIDE = """## Communication Style
Hiroto is quiet and observant. He processes information deeply before responding. He prefers indirect communication over direct confrontation.

## Cultural Insights
In Japanese culture, group harmony ("Wa") and saving face are critical. Public praise is appreciated but can be embarrassing if too loud; public correction is devastating. Silence often means "I'm thinking" or "I'm not sure," not necessarily defiance."""


def build_demo(kind: str, now_ms: int) -> tuple[Subject, list[Message]]:
    """Seeded student plus three analysed messages, keyed by load time so demos can coexist."""
    if kind not in DEMO_KINDS:
        raise ValueError(f"Unknown demo {kind!r}; expected one of {', '.join(DEMO_KINDS)}")
    demo_id = f"demo_{now_ms}"

    if kind == "neurodivergent":
        subject = Subject(
            id=demo_id,
            name="Sam",
            language="English",
            age=10,
            sensitivities=(
                "Autism Spectrum Disorder, Pathological Demand Avoidance (PDA). Extremely literal thinker. "
                'Overwhelmed by direct questions or authoritative tone ("demands"). Loves trains and scheduling.'
            ),
            guide_book=_NEURODIVERGENT_GUIDE,
            last_analyzed_index=3,
        )
        messages = [
            Message(
                id="msg_nd_1",
                original_text="Sam, stop messing around and get your math book out. We are waiting.",
                translated_text="Sam, it is time for math. The books are on the desks.",
                timestamp=now_ms - 300000,
                sender=SenderRole.TEACHER,
                strategy="Low Demand & Declarative",
                reasoning=(
                    'Replacing the demand and social pressure ("waiting") with a neutral statement of fact. '
                    "This lowers the anxiety spike associated with PDA."
                ),
            ),
            Message(
                id="msg_nd_2",
                original_text="No! The schedule says reading!",
                translated_text="I am feeling distressed because this change does not match the schedule I memorized.",
                timestamp=now_ms - 240000,
                sender=SenderRole.STUDENT,
                cultural_note="Literal interpretation of the schedule provides safety. The refusal is distress, not defiance.",
            ),
            Message(
                id="msg_nd_3",
                original_text="We changed it yesterday, remember? Don't be difficult.",
                translated_text=(
                    "I remember we updated the schedule board yesterday. "
                    "Would you like to check the new train timetable on the wall?"
                ),
                timestamp=now_ms - 180000,
                sender=SenderRole.TEACHER,
                strategy="Special Interest Bridging",
                reasoning=(
                    "Using his interest in trains/timetables to re-frame the schedule change as a verifiable fact "
                    'rather than an arbitrary authority decision. Removing the criticism "difficult".'
                ),
            ),
        ]
        return subject, messages

    subject = Subject(
        id=demo_id,
        name="Hiroto",
        language="Japanese",
        age=8,
        sensitivities=(
            'High anxiety about making public mistakes ("Haji"). Responds well to visual metaphors and private '
            "encouragement. Avoids eye contact when scolded."
        ),
        guide_book=_ESL_GUIDE,
        last_analyzed_index=3,
    )
    messages = [
        Message(
            id="msg_1",
            original_text="It is okay to make mistakes, Hiroto. That is how we learn.",
            translated_text="Machigai wa manabi no steppu da yo, Hiroto.",
            timestamp=now_ms - 300000,
            sender=SenderRole.TEACHER,
            strategy="Growth Mindset & Reassurance",
            reasoning=(
                "Addressing his fear of failure by framing mistakes as a necessary part of the learning process. "
                "Using a gentle, encouraging tone to lower anxiety."
            ),
        ),
        Message(
            id="msg_2",
            original_text="Boku wa... minna ga miteiru kara dekinai.",
            translated_text="I... I cannot do it because everyone is watching.",
            timestamp=now_ms - 240000,
            sender=SenderRole.STUDENT,
            cultural_note='Expressing social anxiety and awareness of the "group gaze".',
        ),
        Message(
            id="msg_3",
            original_text="Let's look at this together at my desk later, just us.",
            translated_text="Ato de sensei no tsukue de, issho ni mimashou ne.",
            timestamp=now_ms - 180000,
            sender=SenderRole.TEACHER,
            strategy="Private & Collaborative",
            reasoning=(
                'Removing the pressure of the audience. "Issho ni" (together) emphasizes support and partnership '
                "rather than authoritative correction."
            ),
        ),
    ]
    return subject, messages
