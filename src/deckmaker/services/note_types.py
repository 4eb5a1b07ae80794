"""JSON definitions stored in the collection row: note types, deck options, config."""

from typing import Any

from deckmaker.models.deck import DEFAULT_DECK_CONF_ID, DEFAULT_DECK_ID

LATEX_PRE = (
    "\\documentclass[12pt]{article}\n"
    "\\special{papersize=3in,5in}\n"
    "\\usepackage[utf8]{inputenc}\n"
    "\\usepackage{amssymb,amsmath}\n"
    "\\pagestyle{empty}\n"
    "\\setlength{\\parindent}{0in}\n"
    "\\begin{document}\n"
)
LATEX_POST = "\\end{document}"

MODEL_TYPE_STANDARD = 0
MODEL_TYPE_CLOZE = 1

GLOSSARY_FIELDS = ("UID", "Front", "Back", "Direction")
CLOZE_FIELDS = ("Text", "Hint", "Back")

GLOSSARY_CSS = """.card {
 font-family: arial;
 font-size: 28px;
 text-align: center;
 color: black;
 background-color: white;
}

.direction {
 font-size: clamp(16px, 3.2vw, 18px);
 font-style: italic;
 color: #666;
 margin-bottom: 10px;
}

.question, .answer {
 font-size: 28px;
 margin-bottom: 10px;
}"""

CLOZE_CSS = """.card {
 font-family: arial;
 font-size: 20px;
 line-height: 1.5;
 text-align: center;
 color: black;
 background-color: white;
}

.cloze {
 font-weight: bold;
 color: blue;
}

.nightMode .cloze {
 color: lightblue;
}

.hint {
 font-size: 0.65em;
 font-style: italic;
 opacity: 0.6;
 margin-bottom: 0.4em;
}"""


def _field(name: str, ord_: int, size: int = 20) -> dict[str, Any]:
    return {
        "name": name,
        "ord": ord_,
        "sticky": False,
        "rtl": False,
        "font": "Arial",
        "size": size,
        "media": [],
        "description": "",
    }


def _template(name: str, qfmt: str, afmt: str) -> dict[str, Any]:
    return {
        "name": name,
        "ord": 0,
        "qfmt": qfmt,
        "afmt": afmt,
        "bqfmt": "",
        "bafmt": "",
        "did": None,
        "bfont": "",
        "bsize": 0,
    }


def _note_type(
    model_id: int,
    name: str,
    mod: int,
    model_type: int,
    fields: list[dict[str, Any]],
    template: dict[str, Any],
    css: str,
    sort_field: int,
    req: list,
) -> dict[str, Any]:
    return {
        "id": model_id,
        "name": name,
        "type": model_type,
        "mod": mod,
        "usn": -1,
        "sortf": sort_field,
        "did": DEFAULT_DECK_ID,
        "tmpls": [template],
        "flds": fields,
        "css": css,
        "latexPre": LATEX_PRE,
        "latexPost": LATEX_POST,
        "latexsvg": False,
        "req": req,
        "tags": [],
        "vers": [],
    }


def glossary_note_type(model_id: int, name: str, mod: int) -> dict[str, Any]:
    """Two-sided note type; the direction line only renders when filled in."""
    direction = "{{#Direction}}<div class=\"direction\">{{Direction}}</div>{{/Direction}}"
    question = f'{direction}\n<div class="question">{{{{Front}}}}</div>'
    answer = f'{question}\n<hr id="answer">\n<div class="answer">{{{{Back}}}}</div>'
    fields = [
        _field(field_name, i, size=12 if field_name == "Direction" else 20)
        for i, field_name in enumerate(GLOSSARY_FIELDS)
    ]
    return _note_type(
        model_id,
        name,
        mod,
        MODEL_TYPE_STANDARD,
        fields,
        _template("Card 1", question, answer),
        GLOSSARY_CSS,
        sort_field=1,
        req=[[0, "any", [1]]],
    )


def cloze_note_type(model_id: int, name: str, mod: int) -> dict[str, Any]:
    """Cloze note type; one template covers every {{cN::...}} deletion."""
    body = '{{#Hint}}<div class="hint">{{Hint}}</div>{{/Hint}}\n{{cloze:Text}}'
    answer = f"{body}\n{{{{#Back}}}}<hr>\n{{{{Back}}}}{{{{/Back}}}}"
    fields = [_field(field_name, i) for i, field_name in enumerate(CLOZE_FIELDS)]
    return _note_type(
        model_id,
        name,
        mod,
        MODEL_TYPE_CLOZE,
        fields,
        _template("Cloze", body, answer),
        CLOZE_CSS,
        sort_field=0,
        req=[[0, "any", [0]]],
    )


def default_deck_config() -> dict[str, Any]:
    """Deck options group 1 with Anki's stock scheduling defaults."""
    return {
        "id": DEFAULT_DECK_CONF_ID,
        "mod": 0,
        "name": "Default",
        "usn": 0,
        "maxTaken": 60,
        "autoplay": True,
        "timer": 0,
        "replayq": True,
        "dyn": False,
        "new": {
            "bury": True,
            "delays": [1, 10],
            "initialFactor": 2500,
            "ints": [1, 4, 7],
            "order": 1,
            "perDay": 20,
            "separate": True,
        },
        "lapse": {
            "delays": [10],
            "leechAction": 0,
            "leechFails": 8,
            "minInt": 1,
            "mult": 0,
        },
        "rev": {
            "bury": True,
            "ease4": 1.3,
            "fuzz": 0.05,
            "ivlFct": 1,
            "maxIvl": 36500,
            "minSpace": 1,
            "perDay": 100,
        },
    }


def collection_config(current_model_id: int) -> dict[str, Any]:
    """Collection-wide settings stored in col.conf."""
    return {
        "nextPos": 1,
        "estTimes": True,
        "activeDecks": [DEFAULT_DECK_ID],
        "sortType": "noteFld",
        "timeLim": 0,
        "sortBackwards": False,
        "addToCur": True,
        "curDeck": DEFAULT_DECK_ID,
        "newBury": True,
        "newSpread": 0,
        "dueCounts": True,
        "curModel": str(current_model_id),
        "collapseTime": 1200,
    }
