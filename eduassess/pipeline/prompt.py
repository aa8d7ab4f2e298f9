"""Evaluation prompt composition.

The bolded labels below are the contract between the prompt and
``eduassess.pipeline.extract``; both modules read them from here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from eduassess.schemas import BinaryPayload, GradingConfig, IngestedDocument, StudentInfo, TextPayload

SCORE_LABEL = "Umumiy ball:"
SUMMARY_LABEL = "Xulosa:"
DOCUMENT_TEXT_HEADER = "MUSTAQIL ISH MATNI:"


def bold(label: str) -> str:
    return f"**{label}**"


@dataclass(frozen=True)
class EvaluationRequest:
    instruction: str
    document: IngestedDocument

    @property
    def parts(self) -> list[dict[str, Any]]:
        return [{"text": self.instruction}, document_part(self.document)]


def build_instruction(student: StudentInfo, grading: GradingConfig) -> str:
    return (
        "Siz professional o'qituvchi va baholovchisiz. Quyidagi o'quvchining mustaqil ishini baholang.\n"
        "\n"
        f"Fan: {student.subject}\n"
        f"O'quvchi: {student.full_name}\n"
        f"Guruh: {student.group}\n"
        "\n"
        "Baholash sistemasi:\n"
        f"{grading.grading_system}\n"
        "\n"
        "Baholash mezonlari:\n"
        f"{grading.criteria}\n"
        "\n"
        "MUHIM: Natija (ball) har doim butun sonda bo'lishi shart.\n"
        "\n"
        "Iltimos, quyidagi formatda javob bering (JSON emas, lekin aniq bo'limlar bilan):\n"
        "# BAHOLASH NATIJASI\n"
        f"{bold(SCORE_LABEL)} [Faqat butun sonni yozing]\n"
        f"{bold(SUMMARY_LABEL)} [Fanga mos ravishda qisqa va lo'nda xulosa]\n"
        "\n"
        "# BATAFSIL TAHLIL\n"
        "[Har bir mezon bo'yicha fanga xos batafsil fikrlar va tavsiyalar]\n"
    )


def document_part(document: IngestedDocument) -> dict[str, Any]:
    match document:
        case TextPayload(content=content):
            return {"text": f"{DOCUMENT_TEXT_HEADER}\n\n{content}"}
        case BinaryPayload(data=data, mime_type=mime_type):
            return {"inline_data": {"mime_type": mime_type, "data": data}}
        case _:
            raise TypeError(f"Unsupported document payload: {type(document).__name__}")


def compose(student: StudentInfo, grading: GradingConfig, document: IngestedDocument) -> EvaluationRequest:
    """Build the outbound request; callers check that the student and document are complete."""
    return EvaluationRequest(instruction=build_instruction(student, grading), document=document)
