"""
Localized text templates for the comparison chat.

Keyed by locale; every locale must define the same keys as the default.
"""
import os
from typing import Dict, Any, Optional

DEFAULT_LOCALE = os.getenv("DEFAULT_LOCALE", "it")

# Placeholder the front end replaces with the sign-up button
CTA_MARKER = "[[CREA_UN_ACCOUNT]]"

SEPARATOR = "────────────────────────────────────────"

COUNTRY_FLAGS = {
    "us": "🇺🇸",
    "canada": "🇨🇦",
}

TEMPLATES: Dict[str, Dict[str, Any]] = {
    "it": {
        "limit_reached": (
            "Hai usato tutte le domande gratuite per esplorare i programmi. "
            "Per salvare questa comparazione e continuare senza limiti, {cta}"
        ),
        "intro": (
            "Perfetto, ti aiuto a confrontare i programmi all’estero.\n"
            "Puoi rispondere anche in modo libero, ad esempio: "
            "\"Ho 9000 euro per un anno negli USA per fare un’esperienza culturale\".\n\n"
        ),
        "known_prefix": "Ok, finora ho capito {parts}.\n\n",
        "known_country": "destinazione: {country}",
        "known_city": "città: {city}",
        "known_duration": "durata: circa {weeks} settimane",
        "known_budget": "budget indicativo: circa €{budget}",
        "known_goal": "obiettivo: {goal}",
        "and": "e",
        "ask_budget": (
            "Partiamo dal budget totale che hai a disposizione per corso + alloggio. "
            "Quanto puoi spendere in totale? Puoi scrivere, ad esempio: 8000 euro, 10000, 12000..."
        ),
        "ask_country_code": (
            "Ora scegli il Paese di destinazione che vuoi confrontare: ad esempio USA oppure Canada. "
            "Se hai già in mente una città (es. Boston, San Diego, Toronto), puoi scriverla."
        ),
        "ask_duration_weeks": (
            "Che durata hai in mente? Puoi rispondere in settimane oppure scrivere: estate, semestre, anno. "
            "Ad esempio: 24 settimane, 3 mesi, un anno intero."
        ),
        "ask_goal": (
            "Ultimo passo: qual è il tuo obiettivo principale per questo periodo all’estero? "
            "Puoi scrivere in modo libero, ad esempio: esperienza culturale e di crescita personale, "
            "migliorare l’inglese per l’università, preparare esami come IELTS o TOEFL, "
            "capire se potrei trasferirmi in quel Paese."
        ),
        "reprompt": "Non sono sicuro di aver capito bene, proviamo così.\n\n",
        "results_header": (
            "In base al tuo obiettivo \"{goal}\", al budget di circa €{budget} e alla durata di "
            "{weeks} settimane in {country}, ecco le principali opzioni che Edovia ha trovato per te:\n\n"
        ),
        "city_note": (
            "Non ho trovato scuole partner a {city}: ti mostro le alternative più vicine in {country}.\n\n"
        ),
        "card_option": "OPZIONE {index}",
        "card_match": "Match: {stars}  ({score}/5)",
        "card_school": "Scuola: {name}",
        "card_city": "Città: {city}",
        "card_duration": "Durata stimata: {weeks} settimane",
        "card_total": "Totale stimato: €{total}",
        "card_tuition": "  • Corso: €{tuition}",
        "card_housing": "  • Alloggio: €{housing}",
        "card_fees": "  • Fee e altre spese: €{fees}",
        "card_tags": "Tag: {tags}",
        "card_notes": "Nota: {notes}",
        "cta": (
            "Per vedere i dettagli completi, salvare la comparazione e procedere con l'application, {cta}"
        ),
        "no_results": (
            "Per i parametri che hai inserito non trovo partner compatibili nei Paesi selezionati. "
            "Possiamo provare a:\n"
            "• Aumentare un po’ il budget\n"
            "• Ridurre la durata\n"
            "• Valutare un altro Paese (ad esempio Canada invece di USA)\n\n"
            "Dimmi cosa preferisci modificare e rifacciamo il confronto."
        ),
        "generic_unavailable": "C'è stato un problema, riprova tra poco.",
        "tags": {
            "budget_ok": "[Budget ok]",
            "over_budget": "[Sopra budget]",
            "academic_focus": "[Focus accademico]",
            "lifestyle_outdoor": "[Lifestyle e outdoor]",
            "big_city": "[Grande città]",
            "match_very_high": "[Match molto alto]",
            "match_good": "[Buon match]",
            "match_compromise": "[Compromesso budget]",
            "match_reference": "[Usa come riferimento]",
        },
        "countries": {
            "us": "USA",
            "canada": "Canada",
        },
    },
    "en": {
        "limit_reached": (
            "You have used all the free questions for exploring programs. "
            "To save this comparison and continue without limits, {cta}"
        ),
        "intro": (
            "Great, I'll help you compare programs abroad.\n"
            "You can answer freely, for example: "
            "\"I have 9000 euro for a year in the USA for a cultural experience\".\n\n"
        ),
        "known_prefix": "Ok, so far I understood {parts}.\n\n",
        "known_country": "destination: {country}",
        "known_city": "city: {city}",
        "known_duration": "duration: about {weeks} weeks",
        "known_budget": "budget: about €{budget}",
        "known_goal": "goal: {goal}",
        "and": "and",
        "ask_budget": (
            "Let's start with the total budget you have for course + housing. "
            "How much can you spend overall? For example: 8000 euro, 10000, 12000..."
        ),
        "ask_country_code": (
            "Now pick the destination country you want to compare: for example USA or Canada. "
            "If you already have a city in mind (e.g. Boston, San Diego, Toronto), just write it."
        ),
        "ask_duration_weeks": (
            "How long would you like to stay? Answer in weeks or write: summer, semester, year. "
            "For example: 24 weeks, 3 months, a full year."
        ),
        "ask_goal": (
            "Last step: what is your main goal for this time abroad? "
            "Feel free to write it in your own words, for example: cultural experience and personal growth, "
            "improving your English for university, preparing exams like IELTS or TOEFL, "
            "finding out whether you could relocate to that country."
        ),
        "reprompt": "I'm not sure I got that right, let's try this way.\n\n",
        "results_header": (
            "Based on your goal \"{goal}\", a budget of about €{budget} and a stay of "
            "{weeks} weeks in {country}, here are the main options Edovia found for you:\n\n"
        ),
        "city_note": (
            "I couldn't find partner schools in {city}: here are the closest alternatives in {country}.\n\n"
        ),
        "card_option": "OPTION {index}",
        "card_match": "Match: {stars}  ({score}/5)",
        "card_school": "School: {name}",
        "card_city": "City: {city}",
        "card_duration": "Estimated duration: {weeks} weeks",
        "card_total": "Estimated total: €{total}",
        "card_tuition": "  • Course: €{tuition}",
        "card_housing": "  • Housing: €{housing}",
        "card_fees": "  • Fees and other costs: €{fees}",
        "card_tags": "Tags: {tags}",
        "card_notes": "Note: {notes}",
        "cta": (
            "To see full details, save the comparison and move on with your application, {cta}"
        ),
        "no_results": (
            "With the parameters you gave me I can't find compatible partners in the selected countries. "
            "We could try to:\n"
            "• Raise the budget a little\n"
            "• Shorten the stay\n"
            "• Consider another country (for example Canada instead of the USA)\n\n"
            "Tell me what you'd like to change and we'll run the comparison again."
        ),
        "generic_unavailable": "Something went wrong, please try again shortly.",
        "tags": {
            "budget_ok": "[Within budget]",
            "over_budget": "[Over budget]",
            "academic_focus": "[Academic focus]",
            "lifestyle_outdoor": "[Lifestyle & outdoor]",
            "big_city": "[Big city]",
            "match_very_high": "[Very high match]",
            "match_good": "[Good match]",
            "match_compromise": "[Budget compromise]",
            "match_reference": "[Use as reference]",
        },
        "countries": {
            "us": "USA",
            "canada": "Canada",
        },
    },
}


def resolve_locale(locale: Optional[str]) -> str:
    """Normalize a locale tag ("en-US" -> "en"), falling back to the default."""
    if locale:
        language = locale.strip().lower().replace("_", "-").split("-")[0]
        if language in TEMPLATES:
            return language
    return DEFAULT_LOCALE if DEFAULT_LOCALE in TEMPLATES else "it"


def get_templates(locale: Optional[str] = None) -> Dict[str, Any]:
    """Template set for a locale."""
    return TEMPLATES[resolve_locale(locale)]
