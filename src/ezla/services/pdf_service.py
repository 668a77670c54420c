"""
ezla/services/pdf_service.py: PDF-сводка медицинского интервью для врача.

Документ A4 (reportlab, стандартные шрифты Helvetica): данные пациента,
период освобождения, получатель, общий анамнез, симптомы, описание.
Польские диакритики транслитерируются, т.к. стандартные шрифты их не содержат.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from io import BytesIO
from uuid import UUID

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from ezla import storage
from ezla.db.repositories import case_repo
from ezla.exceptions import NotFoundError

logger = logging.getLogger(__name__)

_DIACRITICS = str.maketrans("ąćęłńóśźżĄĆĘŁŃÓŚŹŻ", "acelnoszzACELNOSZZ")

CATEGORY_LABELS = {
    "cold_pain": "Przeziebienie lub bole",
    "gastro": "Zatrucie i problemy zoladkowe",
    "bladder": "Problemy z pecherzem",
    "injury": "Urazy",
    "menstruation": "Menstruacja",
    "back_pain": "Bole plecow",
    "eye": "Problemy z oczami",
    "migraine": "Migrena",
    "acute_stress": "Ostre reakcje na stres",
    "psych": "Problemy psychologiczne",
}

DURATION_LABELS = {
    "today": "Dzisiaj",
    "yesterday": "Wczoraj",
    "2_3": "2-3 dni",
    "4_5": "4-5 dni",
    "gt_5": "Ponad 5 dni",
}

RECIPIENT_LABELS = {
    "pl_employer": "Polski pracodawca",
    "uniformed": "Sluzby mundurowe",
    "student": "Student/Uczen",
    "foreign_employer": "Pracodawca zagraniczny",
    "care": "Zwolnienie na dziecko",
    "krus": "KRUS",
}

CHRONIC_LABELS = {
    "autoimmune": "Choroby autoimmunologiczne",
    "respiratory": "Choroby ukladu oddechowego",
    "diabetes": "Cukrzyca",
    "circulatory": "Choroby ukladu krazenia",
    "cancer": "Nowotwor",
    "osteoporosis": "Osteoporoza",
    "epilepsy": "Padaczka",
    "aids": "AIDS",
    "obesity": "Otylosc",
}

SYMPTOM_LABELS = {
    # cold_pain
    "fever": "Goraczka >38C",
    "subfebrile": "Stan podgoraczkowy",
    "fatigue": "Zmeczenie/brak sil",
    "malaise": "Uczucie rozbicia",
    "weakness": "Oslabienie",
    "chills": "Dreszcze",
    "muscle_pain": "Bole miesni",
    "joint_pain": "Bole stawow",
    "headache": "Bol glowy",
    "dizziness": "Zawroty glowy",
    "runny_nose": "Katar",
    "sneezing": "Kichanie",
    "stuffy_nose": "Zatkany nos",
    "sinus_pain": "Bol zatok",
    "sore_throat": "Bol gardla",
    "hoarseness": "Chrypka",
    "dry_cough": "Kaszel suchy",
    "wet_cough": "Kaszel mokry",
    "dyspnea": "Dusznosc",
    # gastro
    "nausea": "Nudnosci",
    "vomiting": "Wymioty",
    "watery_diarrhea": "Biegunka wodnista",
    "abdominal_pain": "Bol brzucha",
    "no_appetite": "Brak apetytu",
    "food_poisoning": "Zatrucie pokarmowe",
    "heartburn": "Zgaga",
    "bloating": "Wzdecia",
    # bladder
    "frequent_urination": "Czeste oddawanie moczu",
    "painful_urination": "Bolesne oddawanie moczu",
    "burning_urination": "Pieczenie przy oddawaniu moczu",
    "lower_abdominal_pain": "Bol w podbrzuszu",
    "blood_in_urine": "Krew w moczu",
    # injury
    "head": "Glowa i czaszka",
    "neck": "Szyja",
    "spine": "Kregoslup",
    "shoulder": "Barki i ramie",
    "hand": "Reka/nadgarstek",
    "knee": "Kolano",
    "ankle": "Staw skokowy/stopa",
    # menstruation
    "severe_pain": "Silne bole miesiaczkowe",
    "heavy_bleeding": "Obfite krwawienie",
    # back_pain
    "back_spine": "Bol plecow/kregoslupa",
    "sciatica": "Rwa kulszowa",
    "lumbar_pain": "Bol w odcinku ledzwiowo-krzyzowym",
    # eye
    "burning": "Pieczenie",
    "redness": "Zaczerwienienie oczu",
    "tearing": "Lzawienie",
    # migraine
    "photophobia": "Swiatlowstret",
    "history": "Migrena rozpoznana w przeszlosci",
    # acute_stress / psych
    "divorce": "Stres (rozwod)",
    "death": "Stres (smierc bliskiej osoby)",
    "work": "Stres (praca)",
    "job_loss": "Stres (utrata pracy)",
}

LINE_WIDTH_CHARS = 80


def strip_diacritics(text: str) -> str:
    return text.translate(_DIACRITICS)


def wrap_text(text: str, width: int = LINE_WIDTH_CHARS) -> list[str]:
    """Разбить текст по словам на строки не длиннее ``width``."""
    lines: list[str] = []
    remaining = text.strip()
    while remaining:
        if len(remaining) <= width:
            lines.append(remaining)
            break
        split_at = remaining.rfind(" ", 0, width + 1)
        if split_at <= 0:
            split_at = width
        lines.append(remaining[:split_at].rstrip())
        remaining = remaining[split_at:].strip()
    return lines


def _fmt_date(value: date | datetime | str | None) -> str:
    if not value:
        return "-"
    if isinstance(value, str):
        value = date.fromisoformat(value[:10])
    return value.strftime("%d.%m.%Y")


def _yes_no(flag: bool | None) -> str:
    return "Tak" if flag else "Nie"


def render_case_summary(case: dict, profile: dict | None, generated_on: date | None = None) -> bytes:
    """Отрисовать PDF-сводку дела и вернуть байты документа."""
    generated_on = generated_on or datetime.now(timezone.utc).date()
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    _, height = A4
    y = height - 50

    def line(text: str, size: int = 11, bold: bool = False) -> None:
        nonlocal y
        if y < 50:
            c.showPage()
            y = height - 50
        c.setFont("Helvetica-Bold" if bold else "Helvetica", size)
        c.drawString(50, y, strip_diacritics(text))
        y -= 18

    def section(title: str) -> None:
        nonlocal y
        y -= 10
        line(title, size=13, bold=True)
        y -= 5

    line("PODSUMOWANIE WYWIADU MEDYCZNEGO", size=16, bold=True)
    line(f"e-zwolnienie.com.pl | Sprawa: {case.get('case_number') or case['id']}", size=9)
    line(f"Data wygenerowania: {_fmt_date(generated_on)}", size=9)

    section("DANE PACJENTA")
    if profile:
        flat = f"/{profile['flat_no']}" if profile.get("flat_no") else ""
        line(f"Imie i nazwisko: {profile['first_name']} {profile['last_name']}")
        line(f"PESEL: {profile.get('pesel') or '-'}")
        line(f"Data urodzenia: {_fmt_date(profile.get('date_of_birth'))}")
        line(f"Telefon: {profile.get('phone') or '-'}")
        line(f"Email: {profile.get('email') or '-'}")
        line(f"Adres: {profile.get('street') or ''} {profile.get('house_no') or ''}{flat}")
        line(f"         {profile.get('postcode') or ''} {profile.get('city') or ''}")

    section("OKRES ZWOLNIENIA")
    line(f"Zwolnienie od dnia: {_fmt_date(case.get('illness_start'))}")
    line(f"Zwolnienie do dnia: {_fmt_date(case.get('illness_end'))}")
    if case.get("late_justification"):
        line(f"Uzasadnienie poznego zgloszenia: {case['late_justification']}")

    section("TYP ZWOLNIENIA")
    recipient = case.get("recipient_type")
    line(f"Odbiorca: {RECIPIENT_LABELS.get(recipient, recipient)}")

    section("WYWIAD OGOLNY")
    line(f"Ciaza: {_yes_no(case.get('pregnant'))}")
    if case.get("pregnant") and case.get("pregnancy_leave"):
        line("Zwolnienie zwiazane z ciaza: Tak")
    chronic = case.get("chronic_conditions") or []
    line(f"Choroby przewlekle: {_yes_no(bool(chronic))}")
    listed = ", ".join(CHRONIC_LABELS.get(c, c) for c in chronic if c != "other")
    if listed:
        line(f"  - {listed}")
    if "other" in chronic and case.get("chronic_other"):
        line(f"  - Inne: {case['chronic_other']}")
    line(f"Alergie: {_yes_no(case.get('has_allergy'))}")
    if case.get("has_allergy") and case.get("allergy_text"):
        line(f"  - {case['allergy_text']}")
    line(f"Przyjmowane leki: {_yes_no(case.get('has_meds'))}")
    if case.get("has_meds") and case.get("meds_list"):
        line(f"  - {case['meds_list']}")
    line(f"Dlugotrwale zwolnienie (>33 dni/rok): {_yes_no(case.get('long_leave'))}")

    section("OBJAWY I DOLEGLIWOSCI")
    category = case.get("main_category")
    duration = case.get("symptom_duration")
    line(f"Kategoria: {CATEGORY_LABELS.get(category, category)}")
    line(f"Czas trwania objawow: {DURATION_LABELS.get(duration, duration)}")
    symptoms = case.get("symptoms") or []
    if symptoms:
        line("Objawy: " + ", ".join(SYMPTOM_LABELS.get(s, s) for s in symptoms))

    section("OPIS DOLEGLIWOSCI")
    for text_line in wrap_text(case.get("free_text_reason") or ""):
        line(text_line)

    y -= 20
    line("Dokument wygenerowany automatycznie przez system e-zwolnienie.com.pl", size=9)
    line("Ostateczna decyzja o wystawieniu zwolnienia nalezy do lekarza.", size=9)

    c.showPage()
    c.save()
    return buf.getvalue()


def summary_key(case_id: UUID, created_at: datetime | None) -> str:
    """Ключ хранилища: summaries/{case_id}/Wizyta_z_dnia_{YYYY-MM-DD}.pdf."""
    day = (created_at or datetime.now(timezone.utc)).date().isoformat()
    return f"summaries/{case_id}/Wizyta_z_dnia_{day}.pdf"


async def generate_case_summary(case_id: UUID) -> str:
    """
    Сформировать PDF-сводку, сохранить её и добавить в attachment_file_ids.

    Returns:
        Ключ сохранённого файла.
    """
    case = await case_repo.get_case_with_profile(case_id)
    if not case:
        raise NotFoundError("Case", str(case_id))

    pdf_bytes = render_case_summary(case, case.get("profile"))
    key = summary_key(case_id, case.get("created_at"))
    storage.write_bytes(key, pdf_bytes)
    await case_repo.append_attachment(case_id, key)
    logger.info("PDF summary generated for case %s: %s", case["case_number"], key)
    return key
