import math, torch
import torch.nn as nn
import torch.nn.functional as F

# roberta-base; attribute names follow the BERT checkpoint layout so state dicts load as-is
ROBERTA_BASE = dict(num_layers=12, num_attention_heads=12, num_embeddings=50265, hidden_size=768,
                    ffn_hidden_size=3072, max_positions=512, max_token_types=2, layer_norm_eps=1e-12,
                    embedding_dropout=0.1, attention_dropout=0.1, attention_output_dropout=0.1, output_dropout=0.1)

PADDING_IDX = 1

class Embeddings(nn.Module):
    def __init__(self, num_embeddings, hidden_size, max_positions, max_token_types, layer_norm_eps, dropout):
        super().__init__()
        self.word_embeddings = nn.Embedding(num_embeddings, hidden_size, padding_idx=PADDING_IDX)
        self.position_embeddings = nn.Embedding(max_positions, hidden_size)
        self.token_type_embeddings = nn.Embedding(max_token_types, hidden_size)
        self.LayerNorm = nn.LayerNorm(hidden_size, eps=layer_norm_eps)
        self.dropout = nn.Dropout(dropout)

    def forward(self, tokens, positions, segments):
        x = self.word_embeddings(tokens) + self.position_embeddings(positions) + self.token_type_embeddings(segments)
        return self.dropout(self.LayerNorm(x))

class AttentionSelf(nn.Module):
    def __init__(self, num_heads, hidden_size, dropout):
        super().__init__()
        if hidden_size % num_heads != 0:
            raise ValueError(f"num_heads must be a factor of hidden_size, got {num_heads} and {hidden_size}")
        self.num_heads = num_heads
        self.head_size = hidden_size // num_heads
        self.query = nn.Linear(hidden_size, hidden_size)
        self.key = nn.Linear(hidden_size, hidden_size)
        self.value = nn.Linear(hidden_size, hidden_size)
        self.attention_dropout = nn.Dropout(dropout)

    def _split_heads(self, x):
        # [B, T, C] -> [B, H, T, C/H]
        B, T, _ = x.size()
        return x.view(B, T, self.num_heads, self.head_size).permute(0, 2, 1, 3)

    def forward(self, hidden, attention_mask=None):
        B, T, C = hidden.size()
        q = self._split_heads(self.query(hidden)) / math.sqrt(self.head_size)
        k = self._split_heads(self.key(hidden))
        v = self._split_heads(self.value(hidden))
        scores = q @ k.transpose(-1, -2)
        if attention_mask is not None:
            scores = scores + attention_mask
        probs = self.attention_dropout(F.softmax(scores, dim=-1))
        return (probs @ v).permute(0, 2, 1, 3).contiguous().view(B, T, C)

class ResidualOutput(nn.Module):
    """dense -> dropout -> LayerNorm(x + residual)"""
    def __init__(self, in_size, hidden_size, layer_norm_eps, dropout):
        super().__init__()
        self.dense = nn.Linear(in_size, hidden_size)
        self.dropout = nn.Dropout(dropout)
        self.LayerNorm = nn.LayerNorm(hidden_size, eps=layer_norm_eps)

    def forward(self, hidden, residual):
        return self.LayerNorm(self.dropout(self.dense(hidden)) + residual)

class Attention(nn.Module):
    def __init__(self, num_heads, hidden_size, layer_norm_eps, attention_dropout, output_dropout):
        super().__init__()
        self.self = AttentionSelf(num_heads, hidden_size, attention_dropout)
        self.output = ResidualOutput(hidden_size, hidden_size, layer_norm_eps, output_dropout)

    def forward(self, hidden, attention_mask=None):
        return self.output(self.self(hidden, attention_mask), hidden)

class Intermediate(nn.Module):
    def __init__(self, hidden_size, ffn_hidden_size):
        super().__init__()
        self.dense = nn.Linear(hidden_size, ffn_hidden_size)
        self.gelu = nn.GELU()

    def forward(self, x):
        return self.gelu(self.dense(x))

class Layer(nn.Module):
    def __init__(self, num_heads, hidden_size, ffn_hidden_size, layer_norm_eps,
                 attention_dropout, attention_output_dropout, output_dropout):
        super().__init__()
        self.attention = Attention(num_heads, hidden_size, layer_norm_eps, attention_dropout, attention_output_dropout)
        self.intermediate = Intermediate(hidden_size, ffn_hidden_size)
        self.output = ResidualOutput(ffn_hidden_size, hidden_size, layer_norm_eps, output_dropout)

    def forward(self, x, attention_mask=None):
        attn = self.attention(x, attention_mask)
        return self.output(self.intermediate(attn), attn)

class Encoder(nn.Module):
    def __init__(self, num_layers, **layer_kwargs):
        super().__init__()
        self.layer = nn.ModuleList([Layer(**layer_kwargs) for _ in range(num_layers)])

    def forward(self, x, attention_mask=None):
        for lyr in self.layer:
            x = lyr(x, attention_mask)
        return x

class Roberta(nn.Module):
    def __init__(self, num_layers, num_attention_heads, num_embeddings, hidden_size, ffn_hidden_size,
                 max_positions, max_token_types, layer_norm_eps,
                 embedding_dropout, attention_dropout, attention_output_dropout, output_dropout):
        super().__init__()
        self.embeddings = Embeddings(num_embeddings, hidden_size, max_positions, max_token_types,
                                     layer_norm_eps, embedding_dropout)
        self.encoder = Encoder(num_layers, num_heads=num_attention_heads, hidden_size=hidden_size,
                               ffn_hidden_size=ffn_hidden_size, layer_norm_eps=layer_norm_eps,
                               attention_dropout=attention_dropout,
                               attention_output_dropout=attention_output_dropout, output_dropout=output_dropout)

    def forward(self, tokens, positions, segments, attention_mask=None):
        """attention_mask is additive, [B, 1, 1, T] with 0 for tokens and a large negative for padding."""
        return self.encoder(self.embeddings(tokens, positions, segments), attention_mask)

class RobertaForQuestionAnswering(nn.Module):
    def __init__(self, **kwargs):
        super().__init__()
        cfg = {**ROBERTA_BASE, **kwargs}
        self.bert = Roberta(**cfg)
        self.qa_outputs = nn.Linear(cfg["hidden_size"], 2)
        self.apply(self._init_weights)

    @staticmethod
    def _init_weights(module):
        if isinstance(module, nn.Linear):
            nn.init.normal_(module.weight, mean=0.0, std=0.02)
            if module.bias is not None:
                nn.init.zeros_(module.bias)
        elif isinstance(module, nn.Embedding):
            nn.init.normal_(module.weight, mean=0.0, std=0.02)
            if module.padding_idx is not None:
                with torch.no_grad():
                    module.weight[module.padding_idx].zero_()
        elif isinstance(module, nn.LayerNorm):
            nn.init.ones_(module.weight)
            nn.init.zeros_(module.bias)

    def forward(self, tokens, positions, segments, attention_mask=None):
        """Returns (start_logits, end_logits), each [B, T]."""
        logits = self.qa_outputs(self.bert(tokens, positions, segments, attention_mask))
        start_logits, end_logits = logits.split(1, dim=-1)
        return start_logits.squeeze(-1).contiguous(), end_logits.squeeze(-1).contiguous()
