import pytest

from manual_rag.common.schemas import Candidate, Chunk
from manual_rag.generation.llm_interface import BaseLLM


class StubLLM(BaseLLM):
    """LLM stub returning canned replies (or raising canned errors) in order."""

    def __init__(self, *replies, model_name: str = "stub-model"):
        self.replies = list(replies)
        self.prompts: list[str] = []
        self.kwargs: list[dict] = []
        self._model_name = model_name

    @classmethod
    def from_config_dict(cls, config, callback_manager=None):
        return cls()

    @property
    def model_name(self):
        return self._model_name

    def generate(self, prompt: str, **kwargs) -> str:
        self.prompts.append(prompt)
        self.kwargs.append(kwargs)
        reply = self.replies.pop(0) if self.replies else ""
        if isinstance(reply, BaseException):
            raise reply
        return reply


def make_candidate(cid: int, text: str, source: str = "A.pdf", score: float = 1.0) -> Candidate:
    return Candidate(chunk=Chunk(id=cid, source=source, text=text), score=score)


MANUAL_RECORDS = [
    {"id": 1, "source": "ERP_MANUAL.pdf", "text": "Para resetar a senha, clique em Configurações e depois em Segurança."},
    {"id": 2, "source": "ERP_MANUAL.pdf", "text": "O relatório financeiro pode ser exportado em PDF pelo menu Relatórios."},
    {"id": 3, "source": "ESTOQUE.docx", "text": "Para cadastrar um produto, abra Estoque e clique em Novo Produto."},
    {"id": 4, "source": "ESTOQUE.docx", "text": "O inventário mensal é gerado automaticamente no último dia útil."},
    {"id": 5, "source": "FISCAL.txt", "text": "Notas fiscais canceladas aparecem com status Cancelada na consulta."},
]


@pytest.fixture
def stub_llm_factory():
    return StubLLM


@pytest.fixture
def candidate_factory():
    return make_candidate


@pytest.fixture
def manual_records():
    return [dict(r) for r in MANUAL_RECORDS]
