import math, torch
import torch.nn as nn

class PositionalEncoding(nn.Module):
    def __init__(self, d_model, dropout=0.1, max_len=5000):
        super().__init__()
        self.dropout = nn.Dropout(dropout)
        pe = torch.zeros(max_len, d_model)
        position = torch.arange(0, max_len).unsqueeze(1)
        div_term = torch.exp(torch.arange(0, d_model, 2) * (-math.log(10000.0) / d_model))
        pe[:, 0::2] = torch.sin(position * div_term)
        pe[:, 1::2] = torch.cos(position * div_term)
        self.register_buffer("pe", pe.unsqueeze(0).transpose(0, 1))  # (max_len, 1, d_model)

    def forward(self, x):
        return self.dropout(x + self.pe[:x.size(0)])

def generate_square_subsequent_mask(size, device=None):
    """0 on and below the diagonal, -inf above."""
    return torch.triu(torch.full((size, size), float("-inf"), device=device), diagonal=1)

class TransformerModel(nn.Module):
    """Word-level language model; inputs are (seq_len, batch) token ids."""
    def __init__(self, ntokens, ninputs, nheads, nhidden, nlayers, dropout=0.5):
        super().__init__()
        self.ninputs = ninputs
        self.pos_encoder = PositionalEncoding(ninputs, dropout)
        layer = nn.TransformerEncoderLayer(ninputs, nheads, nhidden, dropout)
        self.transformer_encoder = nn.TransformerEncoder(layer, nlayers, enable_nested_tensor=False)
        self.encoder = nn.Embedding(ntokens, ninputs)
        self.decoder = nn.Linear(ninputs, ntokens)
        self.init_weights()

    def init_weights(self, initrange=0.1):
        nn.init.uniform_(self.encoder.weight, -initrange, initrange)
        nn.init.zeros_(self.decoder.bias)
        nn.init.uniform_(self.decoder.weight, -initrange, initrange)

    def generate_square_subsequent_mask(self, size):
        return generate_square_subsequent_mask(size, self.decoder.weight.device)

    def forward(self, src, src_mask):
        src = self.pos_encoder(self.encoder(src) * math.sqrt(self.ninputs))
        return self.decoder(self.transformer_encoder(src, src_mask))
