"""Default taxonomy installed by ``semspine db init --seed``."""

from __future__ import annotations

from semspine.core.timestamps import to_iso8601, utc_now
from semspine.taxonomy.models import (
    SENTINEL_CODE,
    SENTINEL_NAME,
    Tagset,
    TagsetStatus,
    depth_of,
    parent_of,
)
from semspine.taxonomy.store import TaxonomyStore

# (code, name, description, examples)
DEFAULT_TAGSETS: list[tuple[str, str, str, tuple[str, ...]]] = [
    ("AB", "Abstrações", "Conceitos abstratos, tempo e lugar", ("ontem", "sempre", "longe")),
    ("AC", "Ações e Processos", "Verbos de ação, movimento e estado", ("cantar", "tenho", "vai")),
    ("AP", "Atividades e Práticas", "Trabalho, lida campeira, alimentação e vestuário", ("laço", "churrasco")),
    ("CC", "Cultura e Conhecimento", "Arte, música, tradição e saber", ("verso", "milonga")),
    ("EQ", "Estados e Qualidades", "Atributos, tamanhos e intensidades", ("bonito", "pequenino")),
    ("MG", "Marcadores Gramaticais", "Interjeições, advérbios e palavras funcionais", ("bah", "tchê", "é")),
    ("NA", "Natureza", "Fauna, flora, clima e paisagem", ("coxilha", "várzea", "tarumã")),
    ("OA", "Objetos e Artefatos", "Utensílios, ferramentas e objetos materiais", ("cuia", "bomba")),
    ("SE", "Sentimentos e Emoções", "Afetos, estados emocionais e subjetividade", ("saudade", "amor")),
    ("SH", "Seres Humanos", "Pessoas, papéis sociais e relações", ("peão", "prenda")),
    (SENTINEL_CODE, SENTINEL_NAME, "Palavra sem classificação semântica determinada", ()),
    ("AP.ALI", "Alimentação", "Comidas, bebidas e seu preparo", ("chimarrão", "churrasco")),
    ("AP.VES", "Vestuário e Indumentária", "Roupas e indumentária tradicional", ("bombacha", "poncho")),
    ("CC.MUS", "Música e Dança", "Gêneros, instrumentos e danças", ("milonga", "gaita", "vanera")),
    ("NA.FAU", "Fauna", "Animais", ("cavalo", "quero-quero")),
    ("NA.FLO", "Flora", "Plantas e árvores", ("tarumã", "erva")),
    ("NA.GEO", "Paisagem", "Relevo, campo e acidentes geográficos", ("coxilha", "várzea")),
    ("SE.AMO", "Amor", "Afeto romântico e carinho", ("amor", "paixão")),
    ("SE.TRI", "Tristeza", "Melancolia, saudade e dor", ("saudade", "pena")),
    ("SE.ALE", "Alegria", "Contentamento e festa", ("alegria", "festa")),
]


def default_tagsets() -> list[Tagset]:
    now = to_iso8601(utc_now())
    return [
        Tagset(
            code=code,
            name=name,
            description=description,
            parent_code=parent_of(code),
            depth_level=depth_of(code),
            status=TagsetStatus.ACTIVE,
            examples=examples,
            created_by="seed",
            approved_by="seed",
            approved_at=now,
            created_at=now,
        )
        for code, name, description, examples in DEFAULT_TAGSETS
    ]


def seed_default_taxonomy(store: TaxonomyStore) -> int:
    """Install the default active taxonomy. Existing codes are left alone."""
    inserted = store.seed(default_tagsets())
    store.ensure_sentinel()
    return inserted
