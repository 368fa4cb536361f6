import os
from typing import Optional
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field
from ..config import QuestionAnsweringConfig
from ..inference.qa import QuestionAnsweringInference

app = FastAPI(title="Question Answering Server")

class AnswerIn(BaseModel):
    question: str
    top_k: Optional[int] = Field(None, ge=1)

runner = None
corpus = None
selector = None

@app.on_event("startup")
def load():
    global runner, corpus, selector
    path = os.environ.get("TORCHEXAMPLES_QA_CONFIG", "qa_config.json")
    config = QuestionAnsweringConfig.from_json(path) if os.path.exists(path) else QuestionAnsweringConfig()
    runner = QuestionAnsweringInference(config)
    runner.load_model(config.load_model_path)
    corpus = runner.load_corpus(config.data_path(config.test_file))
    selector = runner.build_selector(corpus)

@app.post("/answer")
def answer(body: AnswerIn):
    if runner is None:
        raise HTTPException(status_code=503, detail="model not loaded")
    if not body.question.strip():
        raise HTTPException(status_code=422, detail="question must not be empty")
    answers = runner.answer(body.question, corpus, selector, top_k=body.top_k)
    return {"answers": [{"text": a.text, "score": a.score} for a in answers]}
