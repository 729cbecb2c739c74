from fastapi import APIRouter, HTTPException, Request

from quote_board.schemas.quote import SortKey, ViewUpdate

router = APIRouter()


def _board(request: Request):
    return request.app.state.get_quote_board()


def _rows(quotes) -> list[dict]:
    return [q.model_dump(by_alias=True) for q in quotes]


@router.get('/quotes')
def get_quotes(request: Request, search: str | None = None, sort: SortKey | None = None):
    board = _board(request)
    return _rows(board.view(search_text=search, sort_key=sort))


@router.get('/snapshot')
def get_snapshot(request: Request):
    board = _board(request)
    snapshot = board.snapshot
    if snapshot is None:
        raise HTTPException(status_code=404, detail='SNAPSHOT_NOT_READY')
    return snapshot.model_dump(by_alias=True)


@router.post('/quotes/refresh', status_code=202)
def refresh_quotes(request: Request):
    board = _board(request)
    if not board.trigger_refresh():
        raise HTTPException(status_code=409, detail='REFRESH_IN_PROGRESS')
    return {'accepted': True, 'generation': board.generation}


@router.get('/view')
def get_view(request: Request):
    board = _board(request)
    return {
        'state': board.view_state().model_dump(),
        'rows': _rows(board.view()),
    }


@router.put('/view')
def update_view(req: ViewUpdate, request: Request):
    board = _board(request)
    if req.search_text is not None:
        board.set_search_text(req.search_text)
    if req.sort_key is not None:
        board.set_sort_key(req.sort_key)
    return {
        'state': board.view_state().model_dump(),
        'rows': _rows(board.view()),
    }


@router.get('/board/status')
def board_status(request: Request):
    return _board(request).status().model_dump()


@router.get('/metrics/quote')
def quote_metrics(request: Request):
    return _board(request).metrics()
